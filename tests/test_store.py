import json
import logging

import pytest

from supersaber_core import (
    ChallengeNotFoundError,
    GameStore,
    InMemoryPreferenceStore,
    InvalidEventPayload,
    JsonFilePreferenceStore,
    LaunchSettings,
    load_active_hand,
)


class _BrokenPreferences:
    def get(self, key):
        raise OSError("storage unavailable")

    def set(self, key, value):
        raise OSError("storage unavailable")


class _BackendDown(Exception):
    pass


class _FlakyBackendPreferences:
    def get(self, key):
        raise _BackendDown("backend down")

    def set(self, key, value):
        raise _BackendDown("backend down")


def _start_playing(store):
    store.dispatch("playbuttonclick")
    store.dispatch("songloadfinish")
    assert store.state["isPlaying"] is True


def test_store_initial_state_from_settings_and_preferences():
    prefs = InMemoryPreferenceStore({"hand": "left"})
    store = GameStore(settings=LaunchSettings(challenge="c-1"), preferences=prefs)
    state = store.state
    assert state["activeHand"] == "left"
    assert state["challenge"]["id"] == "c-1"
    assert state["menuActive"] is True
    assert len(store.cache) == 0


def test_state_snapshot_is_read_only_copy():
    store = GameStore()
    snapshot = store.state
    snapshot["damage"] = 99
    snapshot["score"]["score"] = 99
    assert store.state["damage"] == 0
    assert store.state["score"]["score"] == 0


def test_unknown_event_is_a_silent_no_op():
    store = GameStore()
    calls = []
    store.subscribe(calls.append)
    before = store.state
    store.dispatch("doesnotexist", {"anything": True})
    assert store.state == before
    assert calls == []


def test_subscribers_receive_each_committed_state():
    store = GameStore()
    seen = []
    unsubscribe = store.subscribe(lambda s: seen.append(s["inVR"]))
    store.dispatch("enter-vr")
    store.dispatch("exit-vr")
    unsubscribe()
    store.dispatch("enter-vr")
    assert seen == [True, False]
    unsubscribe()


def test_dispatch_from_subscriber_is_processed_after_current_event():
    store = GameStore()
    order = []

    def on_change(state):
        order.append((state["isSearching"], state["inVR"]))
        if state["isSearching"]:
            store.dispatch("keyboardclose")

    store.subscribe(on_change)
    store.dispatch("keyboardopen")
    assert order == [(True, False), (False, False)]
    assert store.state["isSearching"] is False


def test_scoring_through_store():
    store = GameStore()
    _start_playing(store)
    for _ in range(8):
        store.dispatch("beathit")
    score = store.state["score"]
    assert score["multiplier"] == 8
    assert score["maxCombo"] == 8
    assert score["score"] == 8
    assert store.state["multiplierText"] == "8x"


def test_game_over_through_store():
    store = GameStore()
    _start_playing(store)
    for _ in range(9):
        store.dispatch("beatmiss")
    assert store.state["damage"] == 9
    store.dispatch("beatmiss")
    assert store.state["damage"] == 0
    assert store.state["isGameOver"] is True


def test_god_mode_from_settings():
    store = GameStore(settings=LaunchSettings(god_mode=True))
    _start_playing(store)
    for _ in range(12):
        store.dispatch("minehit")
    assert store.state["damage"] == 0
    assert store.state["isGameOver"] is False


def test_search_and_select_through_store():
    store = GameStore()
    results = [
        {"id": f"id-{i}", "songName": f"Song {i}", "downloads": i, "difficulties": ["Hard", "Easy"]}
        for i in range(13)
    ]
    store.dispatch("searchresults", {"results": results})
    store.dispatch("searchnextpage")
    store.dispatch("searchnextpage")
    state = store.state
    assert state["search"]["page"] == 2
    assert state["search"]["hasNext"] is False
    assert len(state["searchResultsPage"]) == 1

    store.dispatch("menuchallengeselect", "id-12")
    state = store.state
    assert state["menuDifficulties"] == ["Easy", "Hard"]
    assert state["menuSelectedChallenge"]["difficulty"] == "Easy"
    assert state["menuSelectedChallenge"]["index"] == 0
    assert state["menuSelectedChallenge"]["downloadsText"] == "12 Plays"


def test_failed_dispatch_leaves_state_untouched():
    store = GameStore()
    calls = []
    store.subscribe(calls.append)
    before = store.state
    with pytest.raises(ChallengeNotFoundError):
        store.dispatch("menuchallengeselect", "never-seen")
    with pytest.raises(InvalidEventPayload):
        store.dispatch("beatloaderfinish", {"numBeats": "lots"})
    assert store.state == before
    assert calls == []

    # The store keeps working after a rejected event.
    store.dispatch("enter-vr")
    assert store.state["inVR"] is True


def test_invalid_payload_is_logged(caplog):
    store = GameStore()
    with caplog.at_level(logging.WARNING, logger="supersaber_core.events"):
        with pytest.raises(InvalidEventPayload):
            store.dispatch("menuchallengeselect", None)
    assert "menuchallengeselect" in caplog.text


def test_hand_swap_persists_preference():
    prefs = InMemoryPreferenceStore()
    store = GameStore(preferences=prefs)
    store.dispatch("activehandswap")
    assert store.state["activeHand"] == "left"
    assert prefs.get("hand") == "left"
    store.dispatch("activehandswap")
    assert prefs.get("hand") == "right"


def test_other_events_do_not_write_preferences():
    prefs = InMemoryPreferenceStore()
    store = GameStore(preferences=prefs)
    store.dispatch("enter-vr")
    store.dispatch("keyboardopen")
    assert prefs.get("hand") is None


def test_unavailable_preferences_do_not_block_transitions(caplog):
    with caplog.at_level(logging.WARNING, logger="supersaber_core.preferences"):
        store = GameStore(preferences=_BrokenPreferences())
        assert store.state["activeHand"] == "right"
        store.dispatch("activehandswap")
    assert store.state["activeHand"] == "left"
    assert "hand preference" in caplog.text


def test_json_file_preferences_round_trip(tmp_path):
    path = tmp_path / "prefs" / "settings.json"
    store = GameStore(preferences=JsonFilePreferenceStore(path))
    store.dispatch("activehandswap")
    assert json.loads(path.read_text(encoding="utf-8")) == {"hand": "left"}

    reopened = GameStore(preferences=JsonFilePreferenceStore(path))
    assert reopened.state["activeHand"] == "left"


def test_malformed_preferences_fall_back_to_right(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_active_hand(JsonFilePreferenceStore(path)) == "right"

    path.write_text(json.dumps({"hand": "both"}), encoding="utf-8")
    assert load_active_hand(JsonFilePreferenceStore(path)) == "right"
    assert load_active_hand(None) == "right"


def test_launch_settings_from_query_string():
    settings = LaunchSettings.from_query_string("?godmode=true&challenge=abc123")
    assert settings.god_mode is True
    assert settings.challenge == "abc123"

    settings = LaunchSettings.from_query_string("https://example.com/index.html?challenge=z")
    assert settings.god_mode is False
    assert settings.challenge == "z"

    assert LaunchSettings.from_query_string("godmode=1").god_mode is True
    assert LaunchSettings.from_query_string("godmode=false").god_mode is False
    assert LaunchSettings.from_query_string("godmode=").god_mode is False
    assert LaunchSettings.from_query_string("").challenge == ""


def test_launch_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SUPERSABER_GOD_MODE", "1")
    monkeypatch.setenv("SUPERSABER_CHALLENGE", "env-challenge")
    settings = LaunchSettings()
    assert settings.god_mode is True
    assert settings.challenge == "env-challenge"
    assert GameStore(settings=settings).state["challenge"]["id"] == "env-challenge"


def test_backend_specific_preference_errors_do_not_block_transitions(caplog):
    with caplog.at_level(logging.WARNING, logger="supersaber_core.preferences"):
        store = GameStore(preferences=_FlakyBackendPreferences())
        seen = []
        store.subscribe(lambda s: seen.append(s["activeHand"]))
        store.dispatch("activehandswap")
    assert store.state["activeHand"] == "left"
    assert seen == ["left"]
    assert "Could not read hand preference" in caplog.text
    assert "Could not save hand preference" in caplog.text
