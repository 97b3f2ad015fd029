"""Pure display and ranking helpers used by the event handlers."""
from __future__ import annotations

import math
from typing import Iterable, List

DIFFICULTIES = ("Easy", "Normal", "Hard", "Expert", "ExpertPlus")

S3_BASE_URL = "https://s3-us-west-2.amazonaws.com/supersaber"

# Inclusive lower bounds, checked in order; perfect accuracy is handled first.
RANK_THRESHOLDS = (
    (0.90, "A"),
    (0.80, "B"),
    (0.70, "C"),
    (0.60, "D"),
)


def truncate(text: str | None, length: int) -> str:
    """Shorten text to at most `length` characters.

    Text of `length` characters or more keeps its first `length - 3`
    characters followed by "...". Missing text becomes "".

    Examples:
        - truncate("Short", 24) → "Short"
        - truncate("A" * 30, 24) → "AAAAAAAAAAAAAAAAAAAAA..."
        - truncate(None, 24) → ""
    """
    if not text:
        return ""
    if len(text) >= length:
        return text[: length - 3] + "..."
    return text


def difficulty_rank(difficulty: str) -> int:
    """Position of a difficulty in the fixed Easy..ExpertPlus ordering.

    Unknown values sort before every known difficulty.
    """
    try:
        return DIFFICULTIES.index(difficulty)
    except ValueError:
        return -1


def sort_difficulties(difficulties: Iterable[str]) -> List[str]:
    # sorted() is stable, equal ranks keep their relative order
    return sorted(difficulties, key=difficulty_rank)


def multiplier_for_combo(combo: int) -> int:
    """Score multiplier tier for a combo: 1, 2, 4 or 8."""
    if combo >= 8:
        return 8
    if combo < 1:
        return 1
    return 2 ** int(math.floor(math.log2(combo)))


def format_song_length(seconds: float) -> str:
    """Format a duration in seconds as M:SS.

    Examples:
        - 65 → "1:05"
        - 179.6 → "3:00"
    """
    minutes = int(seconds // 60)
    remainder = int(math.floor(seconds - minutes * 60 + 0.5))
    if remainder >= 60:
        minutes += 1
        remainder -= 60
    return f"{minutes}:{remainder:02d}"


def format_accuracy(accuracy: float) -> str:
    """Whole-percentage string; exact halves round up, but float error may round them down."""
    return f"{int(math.floor(accuracy * 100 + 0.5))}%"


def rank_for_accuracy(accuracy: float) -> str:
    if accuracy == 1:
        return "S"
    for threshold, rank in RANK_THRESHOLDS:
        if accuracy >= threshold:
            return rank
    return "F"


def s3_file_url(challenge_id: str, filename: str) -> str:
    """Location of a challenge asset in the public asset bucket."""
    return f"{S3_BASE_URL}/{challenge_id}-{filename}"
