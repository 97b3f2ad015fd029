"""Core game state transitions (pure, no rendering/audio/network).

This module implements the rules of a rhythm-action session as plain
functions over a single state dict.

Architecture:
- State is a plain dict with keys like activeHand, damage, score, search, menuActive, etc.
- Events are members of `Event`; payloads are validated by `parse_payload()` first
- apply_event() takes (state, event, payload) and returns EventOutcome with the new state
- Each event runs in two phases: the handler mutates a deepcopy, then compute_state()
  recomputes every derived field on that copy
- The parent (GameStore) swaps the new state in, persists preferences and notifies subscribers

Key concepts:
- damage: Float in [0, DAMAGE_MAX); reaching DAMAGE_MAX resets it to 0 and sets isGameOver
- combo/multiplier: Consecutive hits; multiplier tiers are 1, 2, 4, 8
- search.page: 0-based page into search.results, PAGE_SIZE results per page
- menuSelectedChallenge: Challenge staged in the menu; `challenge` is the committed one
- isPlaying: Derived only; never written by a handler

Derived fields (compute_state):
- isPlaying, leftRaycasterActive, rightRaycasterActive, loadingText, multiplierText
"""
from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .cache import ChallengeCache
from .events import (
    BeatLoaderFinishPayload,
    ChallengeSelectPayload,
    DifficultySelectPayload,
    Event,
    SearchResultsPayload,
    SongLengthPayload,
    parse_payload,
)
from .formatting import (
    format_accuracy,
    format_song_length,
    multiplier_for_combo,
    rank_for_accuracy,
    s3_file_url,
    sort_difficulties,
    truncate,
)
from .preferences import HAND_KEY
from .types import StateDict

logger = logging.getLogger(__name__)

PAGE_SIZE = 6
SONG_NAME_TRUNCATE = 24
SONG_SUB_NAME_TRUNCATE = 32
DEFAULT_SONG_SUB_NAME = "Unknown Artist"

DAMAGE_DECAY = 0.25
DAMAGE_MAX = 10


@dataclass
class EventOutcome:
    """Result of applying an event."""

    state: StateDict
    event: Optional[Event]
    handled: bool
    # Preference key -> value writes requested by the handler.
    preference_writes: Dict[str, str] = field(default_factory=dict)


@dataclass
class _HandlerContext:
    cache: ChallengeCache
    god_mode: bool = False
    preference_writes: Dict[str, str] = field(default_factory=dict)


def default_state(active_hand: str = "right", challenge_id: str = "") -> Dict[str, Any]:
    """Create the initial state tree.

    Args:
        active_hand: Persisted hand preference ('left' | 'right')
        challenge_id: Challenge id from the launch configuration, if any

    Returns:
        Dict with every primary field at its starting value and the derived
        fields already computed (menu open, nothing playing).
    """
    state: StateDict = {
        "activeHand": active_hand,
        "challenge": {
            "author": "",
            "difficulty": "",
            "id": challenge_id,
            "image": "",
            "isLoading": False,
            "isBeatsPreloaded": False,
            "songName": "",
            "songLength": 0,
            "songSubName": "",
        },
        "damage": 0,
        "inVR": False,
        "isGameOver": False,
        "isPaused": False,
        "isPlaying": False,
        "isSearching": False,
        "isSongFetching": False,
        "isSongLoading": False,
        "isVictory": False,
        "menuActive": True,
        "menuDifficulties": [],
        "menuSelectedChallenge": {
            "author": "",
            "difficulty": "",
            "downloads": "",
            "downloadsText": "",
            "id": "",
            "index": -1,
            "image": "",
            "numBeats": None,
            "songInfoText": "",
            "songLength": None,
            "songName": "",
            "songSubName": "",
        },
        "multiplierText": "1x",
        "score": {
            "accuracy": "",
            "beatsHit": 0,
            "beatsMissed": 0,
            "combo": 0,
            "maxCombo": 0,
            "multiplier": 1,
            "rank": "",
            "score": 0,
        },
        "search": {
            "active": True,
            "page": 0,
            "hasNext": False,
            "hasPrev": False,
            "results": [],
            "songNameTexts": "",
            "songSubNameTexts": "",
        },
        "searchResultsPage": [],
    }
    return compute_state(state)


# ==================== SHARED ROUTINES ====================


def reset_score(state: StateDict) -> None:
    state["damage"] = 0
    score = state["score"]
    score["beatsHit"] = 0
    score["beatsMissed"] = 0
    score["combo"] = 0
    score["maxCombo"] = 0
    score["score"] = 0
    score["multiplier"] = 1


def take_damage(state: StateDict, god_mode: bool = False) -> None:
    """Apply one point of damage if actively playing, ending the game at DAMAGE_MAX.

    Damage breaks the combo. The game-over check runs in the same call so a
    damage value of DAMAGE_MAX is never left in the state.
    """
    if god_mode:
        return
    if not state.get("isPlaying"):
        return
    state["damage"] += 1
    state["score"]["combo"] = 0
    state["score"]["multiplier"] = 1
    _check_game_over(state)


def _check_game_over(state: StateDict) -> None:
    if state["damage"] >= DAMAGE_MAX:
        state["damage"] = 0
        state["isGameOver"] = True
        logger.info("Game over")


def compute_selected_challenge_index(state: StateDict) -> None:
    selected = state["menuSelectedChallenge"]
    selected["index"] = -1
    for i, result in enumerate(state["searchResultsPage"]):
        if result.get("id") == selected.get("id"):
            selected["index"] = i
            break


def compute_search_pagination(state: StateDict) -> None:
    """Rebuild the visible results page and its display strings.

    Logic:
        1. hasPrev/hasNext from the page number and ceil(len(results) / PAGE_SIZE)
        2. searchResultsPage = results[page * PAGE_SIZE : page * PAGE_SIZE + PAGE_SIZE]
        3. Each page entry gets its 0-based in-page `index`
        4. Newline-terminated song name / sub-name strings in page order
        5. Recompute menuSelectedChallenge.index against the new page
    """
    search = state["search"]
    results: List[Dict[str, Any]] = search["results"]
    page = search["page"]
    num_pages = -(-len(results) // PAGE_SIZE)
    search["hasPrev"] = page > 0
    search["hasNext"] = page < num_pages - 1

    start = page * PAGE_SIZE
    page_results = results[start : start + PAGE_SIZE]
    song_names = ""
    song_sub_names = ""
    for i, result in enumerate(page_results):
        result["index"] = i
        song_names += truncate(result.get("songName"), SONG_NAME_TRUNCATE).upper() + "\n"
        song_sub_names += truncate(result.get("songSubName"), SONG_SUB_NAME_TRUNCATE) + "\n"

    state["searchResultsPage"] = page_results
    search["songNameTexts"] = song_names
    search["songSubNameTexts"] = song_sub_names

    compute_selected_challenge_index(state)


def compute_song_info_text(state: StateDict) -> None:
    selected = state["menuSelectedChallenge"]
    num_beats = selected.get("numBeats")
    song_length = selected.get("songLength")
    if not num_beats or not song_length:
        return
    selected["songInfoText"] = f"{format_song_length(song_length)} / {num_beats} beats"


# ==================== HANDLERS ====================


def _on_active_hand_swap(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["activeHand"] = "left" if state["activeHand"] == "right" else "right"
    ctx.preference_writes[HAND_KEY] = state["activeHand"]


def _on_beat_hit(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["damage"] = max(0, state["damage"] - DAMAGE_DECAY)
    score = state["score"]
    score["beatsHit"] += 1
    score["score"] += 1
    score["combo"] += 1
    if score["combo"] > score["maxCombo"]:
        score["maxCombo"] = score["combo"]
    score["multiplier"] = multiplier_for_combo(score["combo"])


def _on_beat_miss(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    # Shared by beatmiss and beatwrong.
    state["score"]["beatsMissed"] += 1
    take_damage(state, ctx.god_mode)


def _on_damage(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    # Shared by minehit and wallhitstart.
    take_damage(state, ctx.god_mode)


def _on_beat_loader_start(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["challenge"]["isBeatsPreloaded"] = False
    state["challenge"]["isLoading"] = True
    selected = state["menuSelectedChallenge"]
    selected["songInfoText"] = ""
    selected["numBeats"] = None
    selected["songLength"] = None


def _on_beat_loader_finish(
    state: StateDict, payload: BeatLoaderFinishPayload, ctx: _HandlerContext
) -> None:
    state["challenge"]["isLoading"] = False
    state["menuSelectedChallenge"]["numBeats"] = payload.numBeats
    compute_song_info_text(state)


def _on_beat_loader_preload_finish(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["challenge"]["isBeatsPreloaded"] = True


def _on_enter_vr(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["inVR"] = True


def _on_exit_vr(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["inVR"] = False


def _on_game_menu_resume(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["isPaused"] = False


def _on_game_menu_restart(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    reset_score(state)
    state["challenge"]["isBeatsPreloaded"] = False
    state["isGameOver"] = False
    state["isPaused"] = False
    state["isVictory"] = False
    state["isSongLoading"] = True


def _on_game_menu_exit(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    reset_score(state)
    state["challenge"]["isBeatsPreloaded"] = False
    state["isGameOver"] = False
    state["isPaused"] = False
    state["isVictory"] = False
    state["menuActive"] = True
    state["challenge"]["id"] = ""


def _on_keyboard_close(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["isSearching"] = False


def _on_keyboard_open(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["isSearching"] = True
    state["menuSelectedChallenge"]["id"] = ""


def _on_menu_challenge_select(
    state: StateDict, payload: ChallengeSelectPayload, ctx: _HandlerContext
) -> None:
    """Stage a challenge from the cache populated by search results.

    Behavior:
        - Copies every cached field onto menuSelectedChallenge
        - menuDifficulties sorted Easy..ExpertPlus, defaulting to the easiest
        - image and downloadsText derived from the id and download count
        - Closes the search keyboard
    """
    challenge_id = payload.id
    # Raises ChallengeNotFoundError before anything is written.
    challenge_data = ctx.cache.get(challenge_id)

    selected = state["menuSelectedChallenge"]
    selected.update(challenge_data)

    state["menuDifficulties"] = sort_difficulties(challenge_data.get("difficulties") or [])
    selected["difficulty"] = state["menuDifficulties"][0] if state["menuDifficulties"] else ""

    selected["image"] = s3_file_url(challenge_id, "image.jpg")
    selected["downloadsText"] = f"{challenge_data.get('downloads')} Plays"
    compute_selected_challenge_index(state)

    state["isSearching"] = False


def _on_menu_challenge_unselect(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["menuSelectedChallenge"]["id"] = ""


def _on_menu_difficulty_select(
    state: StateDict, payload: DifficultySelectPayload, ctx: _HandlerContext
) -> None:
    state["menuSelectedChallenge"]["difficulty"] = payload.difficulty


def _on_menu_selected_challenge_song_length(
    state: StateDict, payload: SongLengthPayload, ctx: _HandlerContext
) -> None:
    state["menuSelectedChallenge"]["songLength"] = payload.seconds
    compute_song_info_text(state)


def _on_pause_game(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    if not state.get("isPlaying"):
        return
    state["isPaused"] = True


def _on_play_button_click(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    """Commit the staged challenge and start loading it."""
    reset_score(state)

    state["challenge"].update(deepcopy(state["menuSelectedChallenge"]))

    state["menuActive"] = False
    state["menuSelectedChallenge"]["id"] = ""

    state["isSearching"] = False
    state["isSongLoading"] = True


def _on_search_prev_page(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    if state["search"]["page"] == 0:
        return
    state["search"]["page"] -= 1
    compute_search_pagination(state)


def _on_search_next_page(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    search = state["search"]
    # Allows stepping one page past the last populated page.
    if search["page"] > len(search["results"]) // PAGE_SIZE:
        return
    search["page"] += 1
    compute_search_pagination(state)


def _on_search_results(
    state: StateDict, payload: SearchResultsPayload, ctx: _HandlerContext
) -> None:
    """Replace the results list, cache every result and return to page 0."""
    results: List[Dict[str, Any]] = []
    for item in payload.results:
        result = item.model_dump()
        result["songSubName"] = result.get("songSubName") or DEFAULT_SONG_SUB_NAME
        result["shortSongName"] = truncate(result["songName"], SONG_NAME_TRUNCATE).upper()
        result["shortSongSubName"] = truncate(result["songSubName"], SONG_SUB_NAME_TRUNCATE)
        ctx.cache.put(result)
        results.append(result)

    state["search"]["page"] = 0
    state["search"]["results"] = results
    compute_search_pagination(state)
    logger.debug(f"Ingested {len(results)} search results")


def _on_song_fetch_finish(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["isSongFetching"] = False


def _on_song_load_finish(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["isSongFetching"] = False
    state["isSongLoading"] = False


def _on_song_load_start(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    state["isSongFetching"] = True
    state["isSongLoading"] = True


def _on_victory(state: StateDict, payload: Any, ctx: _HandlerContext) -> None:
    """Finish the song: accuracy and rank from hits vs. misses.

    Zero attempts counts as 0% accuracy (rank F).
    """
    state["isVictory"] = True

    score = state["score"]
    attempts = score["beatsHit"] + score["beatsMissed"]
    accuracy = score["beatsHit"] / attempts if attempts else 0.0
    score["accuracy"] = format_accuracy(accuracy)
    score["rank"] = rank_for_accuracy(accuracy)
    logger.info(f"Victory: accuracy={score['accuracy']} rank={score['rank']}")


Handler = Callable[[Dict[str, Any], Any, _HandlerContext], None]

HANDLERS: Dict[Event, Handler] = {
    Event.ACTIVE_HAND_SWAP: _on_active_hand_swap,
    Event.BEAT_HIT: _on_beat_hit,
    Event.BEAT_MISS: _on_beat_miss,
    Event.BEAT_WRONG: _on_beat_miss,
    Event.BEAT_LOADER_FINISH: _on_beat_loader_finish,
    Event.BEAT_LOADER_PRELOAD_FINISH: _on_beat_loader_preload_finish,
    Event.BEAT_LOADER_START: _on_beat_loader_start,
    Event.ENTER_VR: _on_enter_vr,
    Event.EXIT_VR: _on_exit_vr,
    Event.GAME_MENU_EXIT: _on_game_menu_exit,
    Event.GAME_MENU_RESTART: _on_game_menu_restart,
    Event.GAME_MENU_RESUME: _on_game_menu_resume,
    Event.KEYBOARD_CLOSE: _on_keyboard_close,
    Event.KEYBOARD_OPEN: _on_keyboard_open,
    Event.MENU_CHALLENGE_SELECT: _on_menu_challenge_select,
    Event.MENU_CHALLENGE_UNSELECT: _on_menu_challenge_unselect,
    Event.MENU_DIFFICULTY_SELECT: _on_menu_difficulty_select,
    Event.MENU_SELECTED_CHALLENGE_SONG_LENGTH: _on_menu_selected_challenge_song_length,
    Event.MINE_HIT: _on_damage,
    Event.PAUSE_GAME: _on_pause_game,
    Event.PLAY_BUTTON_CLICK: _on_play_button_click,
    Event.SEARCH_NEXT_PAGE: _on_search_next_page,
    Event.SEARCH_PREV_PAGE: _on_search_prev_page,
    Event.SEARCH_RESULTS: _on_search_results,
    Event.SONG_FETCH_FINISH: _on_song_fetch_finish,
    Event.SONG_LOAD_FINISH: _on_song_load_finish,
    Event.SONG_LOAD_START: _on_song_load_start,
    Event.VICTORY: _on_victory,
    Event.WALL_HIT_START: _on_damage,
}


# ==================== DERIVATION ====================


def compute_state(state: StateDict) -> Dict[str, Any]:
    """Recompute every derived field from the primary fields (idempotent).

    Returns the same dict for convenience.
    """
    state["isPlaying"] = (
        not state["menuActive"]
        and not state["isPaused"]
        and not state["isVictory"]
        and not state["isGameOver"]
        and not state["challenge"]["isLoading"]
        and not state["isSongLoading"]
    )

    any_menu_open = (
        state["menuActive"] or state["isPaused"] or state["isVictory"] or state["isGameOver"]
    )
    state["leftRaycasterActive"] = bool(
        any_menu_open and state["activeHand"] == "left" and state["inVR"]
    )
    state["rightRaycasterActive"] = bool(
        any_menu_open and state["activeHand"] == "right" and state["inVR"]
    )

    # Song is decoding if it is loading, but not fetching.
    if state["isSongLoading"]:
        state["loadingText"] = (
            "Downloading song..." if state["isSongFetching"] else "Processing song..."
        )
    else:
        state["loadingText"] = ""

    state["multiplierText"] = f"{state['score']['multiplier']}x"
    return state


def apply_event(
    state: StateDict,
    event: "str | Event",
    payload: Any = None,
    *,
    cache: ChallengeCache | None = None,
    god_mode: bool = False,
) -> EventOutcome:
    """Apply one event to a state tree without mutating it.

    Args:
        state: Current state dict (not mutated)
        event: Event member or wire name; unregistered names are ignored
        payload: Raw payload, validated against the event's schema
        cache: Challenge cache read by menuchallengeselect and written by searchresults
        god_mode: Suppress all damage

    Returns:
        EventOutcome with:
        - state: The handled and re-derived copy (or the input state if unhandled)
        - handled: False for unregistered event names
        - preference_writes: Preferences the caller should persist

    Raises:
        InvalidEventPayload: Payload does not match the event schema
        ChallengeNotFoundError: menuchallengeselect with an uncached id
    """
    resolved = Event.lookup(event)
    if resolved is None:
        logger.debug(f"Ignoring unregistered event {event!r}")
        return EventOutcome(state=state, event=None, handled=False)

    model = parse_payload(resolved, payload)
    ctx = _HandlerContext(
        cache=cache if cache is not None else ChallengeCache(), god_mode=god_mode
    )

    # Work on a copy so a failing handler leaves the caller's state untouched.
    new_state: StateDict = deepcopy(state)
    HANDLERS[resolved](new_state, model, ctx)
    compute_state(new_state)

    return EventOutcome(
        state=new_state,
        event=resolved,
        handled=True,
        preference_writes=dict(ctx.preference_writes),
    )
