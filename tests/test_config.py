from pathlib import Path

from gantt_scheduler.config import Settings, config_dir, load_settings, save_settings
from gantt_scheduler.coordinator import PropagationPolicy


def test_settings_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    settings = Settings(propagation_policy=PropagationPolicy.TRANSITIVE, hours_per_day=6, export_dir="/tmp/out")

    save_settings(settings, path)

    assert load_settings(path) == settings


def test_missing_or_corrupt_settings_give_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    assert load_settings(path) == Settings()

    path.write_text("{not json", encoding="utf-8")
    assert load_settings(path) == Settings()


def test_invalid_values_are_ignored() -> None:
    settings = Settings.from_dict(
        {"propagation_policy": "bogus", "default_duration_days": -1, "window_width": "wide", "unknown": 1}
    )

    assert settings == Settings()


def test_config_dir_follows_xdg(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert config_dir() == tmp_path / "gantt_scheduler"
