from .cache import ChallengeCache, ChallengeNotFoundError
from .config import LaunchSettings
from .events import Event, InvalidEventPayload, parse_payload
from .formatting import (
    DIFFICULTIES,
    difficulty_rank,
    format_accuracy,
    format_song_length,
    multiplier_for_combo,
    rank_for_accuracy,
    sort_difficulties,
    truncate,
)
from .preferences import (
    InMemoryPreferenceStore,
    JsonFilePreferenceStore,
    PreferenceStore,
    load_active_hand,
    save_active_hand,
)
from .state import (
    DAMAGE_MAX,
    HANDLERS,
    PAGE_SIZE,
    EventOutcome,
    apply_event,
    compute_search_pagination,
    compute_state,
    default_state,
    reset_score,
    take_damage,
)
from .store import GameStore
from .types import GameState, ScoreState, SearchResult, SearchState, SelectedChallenge

__all__ = [
    "ChallengeCache",
    "ChallengeNotFoundError",
    "LaunchSettings",
    "Event",
    "InvalidEventPayload",
    "parse_payload",
    "DIFFICULTIES",
    "difficulty_rank",
    "format_accuracy",
    "format_song_length",
    "multiplier_for_combo",
    "rank_for_accuracy",
    "sort_difficulties",
    "truncate",
    "InMemoryPreferenceStore",
    "JsonFilePreferenceStore",
    "PreferenceStore",
    "load_active_hand",
    "save_active_hand",
    "DAMAGE_MAX",
    "HANDLERS",
    "PAGE_SIZE",
    "EventOutcome",
    "apply_event",
    "compute_search_pagination",
    "compute_state",
    "default_state",
    "reset_score",
    "take_damage",
    "GameStore",
    "GameState",
    "ScoreState",
    "SearchResult",
    "SearchState",
    "SelectedChallenge",
]
