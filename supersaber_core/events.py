"""
Event kinds and their payload schemas using Pydantic v2
Validates every payload before it reaches a handler
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .formatting import DIFFICULTIES

logger = logging.getLogger(__name__)


class Event(str, Enum):
    """Closed set of event names accepted by the store."""

    ACTIVE_HAND_SWAP = "activehandswap"
    BEAT_HIT = "beathit"
    BEAT_MISS = "beatmiss"
    BEAT_WRONG = "beatwrong"
    BEAT_LOADER_FINISH = "beatloaderfinish"
    BEAT_LOADER_PRELOAD_FINISH = "beatloaderpreloadfinish"
    BEAT_LOADER_START = "beatloaderstart"
    ENTER_VR = "enter-vr"
    EXIT_VR = "exit-vr"
    GAME_MENU_EXIT = "gamemenuexit"
    GAME_MENU_RESTART = "gamemenurestart"
    GAME_MENU_RESUME = "gamemenuresume"
    KEYBOARD_CLOSE = "keyboardclose"
    KEYBOARD_OPEN = "keyboardopen"
    MENU_CHALLENGE_SELECT = "menuchallengeselect"
    MENU_CHALLENGE_UNSELECT = "menuchallengeunselect"
    MENU_DIFFICULTY_SELECT = "menudifficultyselect"
    MENU_SELECTED_CHALLENGE_SONG_LENGTH = "menuselectedchallengesonglength"
    MINE_HIT = "minehit"
    PAUSE_GAME = "pausegame"
    PLAY_BUTTON_CLICK = "playbuttonclick"
    SEARCH_NEXT_PAGE = "searchnextpage"
    SEARCH_PREV_PAGE = "searchprevpage"
    SEARCH_RESULTS = "searchresults"
    SONG_FETCH_FINISH = "songfetchfinish"
    SONG_LOAD_FINISH = "songloadfinish"
    SONG_LOAD_START = "songloadstart"
    VICTORY = "victory"
    WALL_HIT_START = "wallhitstart"

    @classmethod
    def lookup(cls, name: "str | Event") -> Optional["Event"]:
        """Resolve a wire name to an Event, or None when unregistered."""
        try:
            return cls(name)
        except ValueError:
            return None


class InvalidEventPayload(ValueError):
    """Raised when a payload does not match its event's schema."""

    def __init__(self, event: Event, detail: str) -> None:
        super().__init__(f"Invalid payload for {event.value}: {detail}")
        self.event = event


# ==================== PAYLOAD MODELS ====================


class SearchResultPayload(BaseModel):
    """One challenge summary from the search backend; unknown keys are kept."""

    id: str = Field(..., min_length=1, description="Challenge id")
    songName: str = ""
    songSubName: Optional[str] = None
    author: str = ""
    downloads: int = Field(0, ge=0)
    difficulties: List[str] = Field(default_factory=list)

    @field_validator("difficulties", mode="before")
    @classmethod
    def coerce_difficulty_set(cls, v: Any) -> Any:
        """Accept any iterable of difficulties (sets arrive from JSON as lists)"""
        if isinstance(v, (set, frozenset, tuple)):
            return list(v)
        return v

    model_config = ConfigDict(extra="allow")


class SearchResultsPayload(BaseModel):
    results: List[SearchResultPayload] = Field(default_factory=list)


class ChallengeSelectPayload(BaseModel):
    id: str = Field(..., min_length=1)


class DifficultySelectPayload(BaseModel):
    # Not checked against the menu's difficulties; only offered values are sent.
    difficulty: str

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v: str) -> str:
        if v not in DIFFICULTIES:
            logger.debug(f"Unranked difficulty selected: {v}")
        return v


class BeatLoaderFinishPayload(BaseModel):
    numBeats: Optional[int] = Field(None, ge=0)


class SongLengthPayload(BaseModel):
    seconds: Optional[float] = Field(None, ge=0)


# Events whose raw payload is a bare scalar rather than a mapping.
_SCALAR_FIELDS: Dict[Event, str] = {
    Event.MENU_CHALLENGE_SELECT: "id",
    Event.MENU_DIFFICULTY_SELECT: "difficulty",
    Event.MENU_SELECTED_CHALLENGE_SONG_LENGTH: "seconds",
}

PAYLOAD_MODELS: Dict[Event, Type[BaseModel]] = {
    Event.SEARCH_RESULTS: SearchResultsPayload,
    Event.MENU_CHALLENGE_SELECT: ChallengeSelectPayload,
    Event.MENU_DIFFICULTY_SELECT: DifficultySelectPayload,
    Event.BEAT_LOADER_FINISH: BeatLoaderFinishPayload,
    Event.MENU_SELECTED_CHALLENGE_SONG_LENGTH: SongLengthPayload,
}


def parse_payload(event: Event, raw: Any = None) -> Optional[BaseModel]:
    """
    Validate a raw payload into the model registered for `event`

    Returns:
        The validated model, or None for events that carry no payload

    Raises:
        InvalidEventPayload: If validation fails
    """
    model = PAYLOAD_MODELS.get(event)
    if model is None:
        return None
    if isinstance(raw, model):
        return raw

    field = _SCALAR_FIELDS.get(event)
    if field is not None and not isinstance(raw, dict):
        raw = {field: raw}
    if raw is None:
        raw = {}

    try:
        return model.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Event payload validation failed for {event.value}: {e}")
        raise InvalidEventPayload(event, str(e)) from e


__all__ = [
    "Event",
    "InvalidEventPayload",
    "SearchResultPayload",
    "SearchResultsPayload",
    "ChallengeSelectPayload",
    "DifficultySelectPayload",
    "BeatLoaderFinishPayload",
    "SongLengthPayload",
    "PAYLOAD_MODELS",
    "parse_payload",
]
