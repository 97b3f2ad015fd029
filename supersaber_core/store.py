"""Event store: owns the state tree and the challenge cache for one session."""
from __future__ import annotations

import logging
from collections import deque
from copy import deepcopy
from typing import Any, Callable, Deque, List, Tuple

from .cache import ChallengeCache
from .config import LaunchSettings
from .events import Event
from .preferences import HAND_KEY, PreferenceStore, load_active_hand, save_active_hand
from .state import apply_event, default_state
from .types import GameState

logger = logging.getLogger(__name__)

Subscriber = Callable[[GameState], None]


class GameStore:
    """Single writer of the game state tree.

    Collaborators call dispatch(); presentation layers read `state` or
    subscribe() to receive a snapshot after every handled event. Events
    dispatched while another is being processed (e.g. from a subscriber)
    are queued and handled afterwards, in arrival order.
    """

    def __init__(
        self,
        settings: LaunchSettings | None = None,
        preferences: PreferenceStore | None = None,
    ) -> None:
        self.settings = settings if settings is not None else LaunchSettings()
        self.preferences = preferences
        self.cache = ChallengeCache()
        self._state = default_state(
            active_hand=load_active_hand(preferences),
            challenge_id=self.settings.challenge,
        )
        self._subscribers: List[Subscriber] = []
        self._pending: Deque[Tuple[Any, Any]] = deque()
        self._dispatching = False

    @property
    def state(self) -> GameState:
        """Read-only snapshot of the current tree."""
        return deepcopy(self._state)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, event: "str | Event", payload: Any = None) -> None:
        """Handle an event: run its handler, re-derive, commit, then notify.

        Unregistered event names are ignored. Validation and lookup errors
        propagate to the caller and leave the tree unchanged; any events
        queued behind the failing one are dropped.
        """
        self._pending.append((event, payload))
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending:
                self._process(*self._pending.popleft())
        except Exception:
            self._pending.clear()
            raise
        finally:
            self._dispatching = False

    def _process(self, event: Any, payload: Any) -> None:
        outcome = apply_event(
            self._state,
            event,
            payload,
            cache=self.cache,
            god_mode=self.settings.god_mode,
        )
        if not outcome.handled:
            return

        self._state = outcome.state
        logger.debug(f"Handled {outcome.event.value}")

        hand = outcome.preference_writes.get(HAND_KEY)
        if hand is not None:
            save_active_hand(self.preferences, hand)

        if self._subscribers:
            snapshot = self.state
            for callback in list(self._subscribers):
                callback(snapshot)
