"""Tests for settings loading."""

import pytest

from mastery_engine import config
from mastery_engine.config import Settings, get_settings


class TestSettingsDefaults:
    def test_engine_defaults(self):
        settings = Settings()
        assert settings.bkt_p_init == 0.3
        assert settings.bkt_p_guess == 0.25
        assert settings.weak_area_threshold == 60
        assert settings.weak_area_limit == 5
        assert settings.passing_threshold == 70
        assert settings.base_hours_per_mastery_point == 0.1
        assert settings.mastery_multiplier_tiers == [(50.0, 1.2), (70.0, 1.0)]
        assert settings.min_allocation_hours == 0.5

    def test_init_overrides(self):
        settings = Settings(weak_area_threshold=40, bkt_p_slip=0.05)
        assert settings.weak_area_threshold == 40
        assert settings.bkt_p_slip == 0.05

    def test_invalid_bkt_parameter(self):
        with pytest.raises(ValueError):
            Settings(bkt_p_guess=1.0)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PASSING_THRESHOLD", "65")
        assert Settings().passing_threshold == 65

    def test_mastery_dir_created(self, tmp_path):
        settings = Settings(project_root=tmp_path)
        assert settings.mastery_dir == tmp_path / "data" / "mastery"
        assert settings.mastery_dir.is_dir()

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestYamlSource:
    def test_nested_sections_flattened(self, tmp_path, monkeypatch):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "settings.yaml").write_text(
            "bkt:\n"
            "  p_slip: 0.2\n"
            "mastery:\n"
            "  passing_threshold: 75\n"
            "planner:\n"
            "  mastery_multiplier_tiers:\n"
            "    - [40, 1.5]\n"
            "  min_allocation_hours: 1.0\n"
        )
        monkeypatch.setattr(config, "_find_project_root", lambda: tmp_path)

        settings = Settings()
        assert settings.bkt_p_slip == 0.2
        assert settings.passing_threshold == 75
        assert settings.mastery_multiplier_tiers == [(40.0, 1.5)]
        assert settings.min_allocation_hours == 1.0
        assert settings.weak_area_limit == 5

    def test_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "_find_project_root", lambda: tmp_path)
        assert Settings().passing_threshold == 70
