"""Persisted player preferences (best effort, never blocks a transition)."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)

HAND_KEY = "hand"
DEFAULT_HAND = "right"
HANDS = ("left", "right")


class PreferenceStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemoryPreferenceStore:
    """Dict-backed store, used when nothing is persisted between sessions."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFilePreferenceStore:
    """Key/value strings kept in a single JSON object on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read() if self.path.exists() else {}
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")


def load_active_hand(store: PreferenceStore | None) -> str:
    """Read the persisted hand, falling back to "right" on any failure."""
    if store is None:
        return DEFAULT_HAND
    try:
        value = store.get(HAND_KEY)
    except Exception as e:
        logger.warning(f"Could not read hand preference: {e}")
        return DEFAULT_HAND
    if value is None:
        return DEFAULT_HAND
    if value not in HANDS:
        logger.warning(f"Ignoring invalid hand preference: {value!r}")
        return DEFAULT_HAND
    return value


def save_active_hand(store: PreferenceStore | None, hand: str) -> bool:
    """Persist the hand; returns False when the write failed."""
    if store is None:
        return False
    try:
        store.set(HAND_KEY, hand)
    except Exception as e:
        logger.warning(f"Could not save hand preference: {e}")
        return False
    return True
