"""Launch configuration for a game session."""
from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_FALSY = {"", "0", "false", "no", "off"}


class LaunchSettings(BaseSettings):
    """Launch flags loaded from env (SUPERSABER_*) or a launch URL."""

    god_mode: bool = Field(default=False, description="Suppress all damage")
    challenge: str = Field(default="", description="Challenge id to preload")

    model_config = SettingsConfigDict(env_prefix="SUPERSABER_")

    @classmethod
    def from_query_string(cls, query: str) -> "LaunchSettings":
        """Build settings from `?godmode=...&challenge=...`.

        Accepts a bare query string or a full URL. A present `godmode`
        parameter enables god mode unless its value is falsy ("0", "false", ...).
        """
        if "://" in query:
            query = urlsplit(query).query
        params = parse_qs(query.lstrip("?"), keep_blank_values=True)
        god_mode = False
        if "godmode" in params:
            raw = params["godmode"][0].strip().lower()
            god_mode = raw not in _FALSY
        challenge = params.get("challenge", [""])[0].strip()
        return cls(god_mode=god_mode, challenge=challenge)
