"""Session-scoped challenge metadata cache, kept outside the state tree."""
from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Dict, Iterator

logger = logging.getLogger(__name__)


class ChallengeNotFoundError(LookupError):
    """A challenge id was selected without first arriving in search results."""

    def __init__(self, challenge_id: str) -> None:
        super().__init__(f"challenge {challenge_id!r} is not in the challenge cache")
        self.challenge_id = challenge_id


class ChallengeCache:
    """Mapping of challenge id to full metadata.

    Entries are written only while ingesting search results and are never
    pruned; a later result with the same id overwrites the earlier entry.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Dict[str, Any]] = {}

    def put(self, challenge: Dict[str, Any]) -> None:
        challenge_id = challenge["id"]
        if challenge_id in self._entries:
            logger.debug(f"Overwriting cached challenge {challenge_id}")
        self._entries[challenge_id] = deepcopy(challenge)

    def get(self, challenge_id: str) -> Dict[str, Any]:
        """Return a copy of the cached metadata.

        Raises:
            ChallengeNotFoundError: If the id was never cached
        """
        try:
            return deepcopy(self._entries[challenge_id])
        except KeyError:
            raise ChallengeNotFoundError(challenge_id) from None

    def __contains__(self, challenge_id: object) -> bool:
        return challenge_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
