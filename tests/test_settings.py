from __future__ import annotations

from pathlib import Path

from squadguessr import settings as settings_module
from squadguessr import utils
from squadguessr.settings import GameMode, SettingsManager
from squadguessr.utils import save_json, load_json


def _isolate(monkeypatch, tmp: Path) -> None:
    monkeypatch.setattr(utils, "DATA_DIR", tmp)
    monkeypatch.setattr(settings_module, "SETTINGS_FILE", tmp / "settings.json")


def test_settings_load_save_round_trip(monkeypatch, tmp_path) -> None:
    _isolate(monkeypatch, tmp_path)

    mgr = SettingsManager()
    mgr.settings.round_count = 7
    mgr.settings.network.api_base_url = "http://rounds.test"
    mgr.adjust_timer(GameMode.TIME_ATTACK, 15)
    mgr.set_mode(GameMode.MAP_FINDER)

    loaded = SettingsManager()
    assert loaded.settings.round_count == 7
    assert loaded.settings.network.api_base_url == "http://rounds.test"
    assert loaded.settings.timer_for(GameMode.TIME_ATTACK) == 45
    assert loaded.settings.game_mode is GameMode.MAP_FINDER


def test_settings_ignore_bad_values(monkeypatch, tmp_path) -> None:
    _isolate(monkeypatch, tmp_path)
    save_json(tmp_path / "settings.json", {"game_mode": "battle_royale", "mode_timers": {"classic": -10}})

    loaded = SettingsManager().settings
    assert loaded.game_mode is GameMode.CLASSIC
    assert loaded.timer_for(GameMode.CLASSIC) == 0
    assert loaded.timer_for(GameMode.TIME_ATTACK) == 30


def test_timer_never_negative(monkeypatch, tmp_path) -> None:
    _isolate(monkeypatch, tmp_path)
    mgr = SettingsManager()
    assert mgr.adjust_timer(GameMode.CLASSIC, -5) == 0
    assert mgr.toggle_sounds() is True


def test_json_helpers(tmp_path) -> None:
    p = tmp_path / "x.json"
    save_json(p, {"ok": True})
    assert load_json(p, {}) == {"ok": True}
    assert load_json(tmp_path / "missing.json", []) == []
