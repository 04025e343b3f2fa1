"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# YAML section -> {yaml key: Settings field}
_YAML_SECTIONS: dict[str, dict[str, str]] = {
    "server": {
        "host": "host",
        "port": "port",
    },
    "bkt": {
        "p_init": "bkt_p_init",
        "p_transit": "bkt_p_transit",
        "p_guess": "bkt_p_guess",
        "p_slip": "bkt_p_slip",
        "mastered_threshold": "bkt_mastered_threshold",
    },
    "mastery": {
        "weak_area_threshold": "weak_area_threshold",
        "weak_area_limit": "weak_area_limit",
        "passing_threshold": "passing_threshold",
        "high_priority_below": "high_priority_below",
        "medium_priority_below": "medium_priority_below",
        "high_priority_minutes": "high_priority_minutes",
        "medium_priority_minutes": "medium_priority_minutes",
        "low_priority_minutes": "low_priority_minutes",
    },
    "planner": {
        "base_hours_per_mastery_point": "base_hours_per_mastery_point",
        "target_mastery": "target_mastery",
        "default_difficulty": "default_difficulty",
        "mastery_multiplier_tiers": "mastery_multiplier_tiers",
        "mastery_multiplier_floor": "mastery_multiplier_floor",
        "min_allocation_hours": "min_allocation_hours",
        "unconstrained_improvement_cap": "unconstrained_improvement_cap",
    },
}


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        for section, keys in _YAML_SECTIONS.items():
            values = data.get(section) or {}
            for yaml_key, field_name in keys.items():
                flattened[field_name] = values.get(yaml_key)

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Engine tunables loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # BKT cold-start parameters
    bkt_p_init: float = Field(default=0.3, gt=0, lt=1)
    bkt_p_transit: float = Field(default=0.1, gt=0, lt=1)
    bkt_p_guess: float = Field(default=0.25, gt=0, lt=1)
    bkt_p_slip: float = Field(default=0.1, gt=0, lt=1)
    bkt_mastered_threshold: float = Field(default=0.8, ge=0, le=1)

    # Mastery aggregation
    weak_area_threshold: int = Field(default=60, ge=0)
    weak_area_limit: int = Field(default=5, ge=0)
    passing_threshold: float = Field(default=70, gt=0)
    high_priority_below: int = Field(default=30)
    medium_priority_below: int = Field(default=50)
    high_priority_minutes: int = Field(default=60)
    medium_priority_minutes: int = Field(default=45)
    low_priority_minutes: int = Field(default=30)

    # Time allocation planner
    base_hours_per_mastery_point: float = Field(default=0.1, gt=0)
    target_mastery: float = Field(default=80, ge=0, le=100)
    default_difficulty: float = Field(default=3, ge=1, le=5)
    # (mastery upper bound, multiplier) pairs, checked in order
    mastery_multiplier_tiers: list[tuple[float, float]] = Field(
        default_factory=lambda: [(50.0, 1.2), (70.0, 1.0)]
    )
    mastery_multiplier_floor: float = Field(default=0.8, gt=0)
    min_allocation_hours: float = Field(default=0.5, gt=0)
    unconstrained_improvement_cap: float = Field(default=20, ge=0)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def mastery_dir(self) -> Path:
        d = self.project_root / "data" / "mastery"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
