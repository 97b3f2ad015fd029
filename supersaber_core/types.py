"""Type definitions for the game state tree and search payloads."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, TypedDict

Difficulty = Literal["Easy", "Normal", "Hard", "Expert", "ExpertPlus"]
Hand = Literal["left", "right"]


class ActiveChallenge(TypedDict, total=False):
    """The committed challenge currently being played."""
    author: str
    difficulty: str
    id: str
    image: str
    isLoading: bool
    isBeatsPreloaded: bool
    songName: str
    songLength: float
    songSubName: str


class SelectedChallenge(TypedDict, total=False):
    """The challenge staged in the menu, copied from the challenge cache."""
    author: str
    difficulty: str
    difficulties: List[Difficulty]
    downloads: Any
    downloadsText: str
    id: str
    index: int  # Position within searchResultsPage, -1 if absent
    image: str
    numBeats: Optional[int]
    songInfoText: str
    songLength: Optional[float]
    songName: str
    songSubName: str


class ScoreState(TypedDict, total=False):
    accuracy: str  # Only set at victory, e.g. "90%"
    beatsHit: int
    beatsMissed: int
    combo: int
    maxCombo: int
    multiplier: int
    rank: str  # Only set at victory
    score: int


class SearchResult(TypedDict, total=False):
    """A challenge summary as ingested from the search backend."""
    id: str
    songName: str
    songSubName: str
    shortSongName: str
    shortSongSubName: str
    downloads: int
    difficulties: List[Difficulty]
    index: int


class SearchState(TypedDict, total=False):
    active: bool
    page: int  # 0-based
    hasNext: bool
    hasPrev: bool
    results: List[SearchResult]
    songNameTexts: str
    songSubNameTexts: str


class GameState(TypedDict, total=False):
    """
    TypedDict representing the whole game state tree.

    Primary fields are written by event handlers. Derived fields
    (isPlaying, leftRaycasterActive, rightRaycasterActive, loadingText,
    multiplierText) are only written by compute_state().
    """
    activeHand: Hand
    challenge: ActiveChallenge
    damage: float

    # Session flags
    inVR: bool
    isGameOver: bool
    isPaused: bool
    isSearching: bool
    isSongFetching: bool  # Fetching stage
    isSongLoading: bool  # Either fetching or decoding
    isVictory: bool
    menuActive: bool

    # Menu
    menuDifficulties: List[Difficulty]
    menuSelectedChallenge: SelectedChallenge

    score: ScoreState

    # Search
    search: SearchState
    searchResultsPage: List[SearchResult]

    # Derived
    isPlaying: bool
    leftRaycasterActive: bool
    rightRaycasterActive: bool
    loadingText: str
    multiplierText: str


# Type alias matching the plain-dict usage in the state module
StateDict = Dict[str, Any]
