"""Configuration loader with YAML files and environment variable overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Any, Optional
import yaml

from vicompass.core.errors import InvalidConfiguration
from vicompass.feedback.cadence import FeedbackMode
from vicompass.navigation.correction import validate_tolerance
from vicompass.navigation.heading import Responsiveness, SMOOTHING_MODES


class Config:
    """Configuration loader with environment variable override support."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize config loader.

        Args:
            config_dir: Path to config directory. Defaults to 'config' relative to project root.
        """
        if config_dir is None:
            # Find config directory relative to this file
            current_dir = Path(__file__).parent.parent.parent
            config_dir = current_dir / "config"

        self.config_dir = Path(config_dir)
        self._cache: Dict[str, Any] = {}

    def load_profile(self) -> Dict[str, Any]:
        """Load profile configuration with environment overrides."""
        return self._load_config("profile.yml")

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        """Load a YAML config file with environment variable overrides."""
        full_path = self.config_dir / config_path

        # Check cache first
        cache_key = str(full_path)
        if cache_key in self._cache:
            return self._cache[cache_key].copy()

        config: Dict[str, Any] = {}

        if full_path.exists():
            try:
                with open(full_path, 'r', encoding='utf-8') as f:
                    config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise InvalidConfiguration(f"Failed to parse {full_path}: {exc}") from exc
            if not isinstance(config, dict):
                raise InvalidConfiguration(f"Expected a mapping at top level of {full_path}")

        config = self._apply_env_overrides(config, config_path)

        self._cache[cache_key] = config.copy()

        return config

    def _apply_env_overrides(self, config: Dict[str, Any], config_path: str) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        config_name = Path(config_path).stem.upper()
        env_prefix = f"VICOMPASS_{config_name}_"

        def apply_overrides(obj: Any, path: str = "") -> Any:
            if isinstance(obj, dict):
                result = {}
                for key, value in obj.items():
                    new_path = f"{path}.{key}" if path else key
                    env_key = f"{env_prefix}{new_path.replace('.', '_').upper()}"
                    env_value = os.environ.get(env_key)

                    if env_value is not None:
                        # Try to convert env value to appropriate type
                        if isinstance(value, bool):
                            result[key] = env_value.lower() in ('true', '1', 'yes', 'on')
                        elif isinstance(value, int):
                            try:
                                result[key] = int(env_value)
                            except ValueError:
                                result[key] = value
                        elif isinstance(value, float):
                            try:
                                result[key] = float(env_value)
                            except ValueError:
                                result[key] = value
                        else:
                            result[key] = env_value
                    else:
                        result[key] = apply_overrides(value, new_path)
                return result
            else:
                return obj

        return apply_overrides(config)

    def clear_cache(self):
        """Clear the configuration cache."""
        self._cache.clear()


@dataclass(frozen=True)
class CompassSettings:
    diff_tolerance: float = 10.0
    responsiveness: Responsiveness = Responsiveness.MEDIUM
    feedback_mode: FeedbackMode = FeedbackMode.RHYTHMIC
    smoothing_mode: str = "ema"
    slowest_interval_s: float = 2.0
    fastest_interval_s: float = 0.1
    spoken_min_interval_s: float = 2.0
    on_course_cue: bool = False
    on_course_interval_rhythmic_s: float = 5.0
    on_course_interval_spoken_s: float = 15.0
    tack_degrees: float = 100.0
    step_degrees: float = 1.0
    touch_repeat_interval_s: float = 0.2
    tick_interval_s: float = 1.0

    def __post_init__(self) -> None:
        validate_tolerance(self.diff_tolerance)
        if not isinstance(self.responsiveness, Responsiveness):
            raise InvalidConfiguration(f"responsiveness must be a Responsiveness, got {self.responsiveness!r}")
        if not isinstance(self.feedback_mode, FeedbackMode):
            raise InvalidConfiguration(f"feedback_mode must be a FeedbackMode, got {self.feedback_mode!r}")
        if self.smoothing_mode not in SMOOTHING_MODES:
            raise InvalidConfiguration(f"smoothing_mode must be one of {SMOOTHING_MODES}, got {self.smoothing_mode!r}")
        for name in (
            "slowest_interval_s",
            "fastest_interval_s",
            "spoken_min_interval_s",
            "on_course_interval_rhythmic_s",
            "on_course_interval_spoken_s",
            "tack_degrees",
            "step_degrees",
            "touch_repeat_interval_s",
            "tick_interval_s",
        ):
            if getattr(self, name) <= 0:
                raise InvalidConfiguration(f"{name} must be > 0")
        if self.fastest_interval_s > self.slowest_interval_s:
            raise InvalidConfiguration("fastest_interval_s must not exceed slowest_interval_s")

    @classmethod
    def from_profile(cls, profile: Optional[Dict[str, Any]] = None) -> "CompassSettings":
        """Build validated settings from a profile dict; unknown keys are ignored."""
        profile = profile or {}
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in profile.items():
            if key not in known or value is None:
                continue
            if key == "responsiveness":
                value = Responsiveness.parse(value)
            elif key == "feedback_mode":
                value = FeedbackMode.parse(value)
            elif key == "smoothing_mode":
                value = str(value).lower()
            elif key == "on_course_cue":
                value = bool(value)
            else:
                try:
                    value = float(value)
                except (TypeError, ValueError) as exc:
                    raise InvalidConfiguration(f"{key} must be numeric, got {value!r}") from exc
            kwargs[key] = value
        return cls(**kwargs)

    def with_changes(self, **changes: Any) -> "CompassSettings":
        """Return a validated copy with the given fields replaced."""
        return replace(self, **changes)

    def on_course_interval(self, mode: FeedbackMode) -> float:
        if mode is FeedbackMode.SPOKEN:
            return self.on_course_interval_spoken_s
        return self.on_course_interval_rhythmic_s


# Global config instance
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def load_profile() -> Dict[str, Any]:
    """Convenience function to load profile config."""
    return get_config().load_profile()


def load_settings() -> CompassSettings:
    """Load the profile and validate it into CompassSettings."""
    return CompassSettings.from_profile(load_profile())
