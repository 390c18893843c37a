"""
Configuration for dssim comparisons.

The configuration is an immutable value: it is created once (defaults, JSON
file or CLI flags) and passed explicitly to every stage of the pipeline.
Use DssimConfig.replace() to derive a modified copy.
"""

import json
import logging
import math
import os
from dataclasses import dataclass, asdict, fields, replace as dc_replace
from typing import Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Constants
DEFAULT_MAX_LEVELS = 5
DEFAULT_MIN_SIZE = 4
DEFAULT_SIGMA = 1.5
DEFAULT_WINDOW_RADIUS = 5  # 11 taps
DEFAULT_K1 = 0.01
DEFAULT_K2 = 0.03
DEFAULT_DYNAMIC_RANGE = 1.0
# Per-level weights, finest level first. Mid and coarse scales dominate.
DEFAULT_SCALE_WEIGHTS = (0.028, 0.197, 0.322, 0.298, 0.155)
# Luma first, then the two chroma channels
DEFAULT_CHANNEL_WEIGHTS = (1.0, 0.25, 0.25)
DEFAULT_COLOR_SPACE = "ycbcr"
COLOR_SPACES = ("ycbcr", "lab", "gray")

INT_FIELDS = ("max_levels", "min_size", "window_radius", "workers")
FLOAT_FIELDS = ("sigma", "k1", "k2", "dynamic_range")


@dataclass(frozen=True)
class DssimConfig:
    """Configuration for multi-scale SSIM comparison"""
    max_levels: int = DEFAULT_MAX_LEVELS
    min_size: int = DEFAULT_MIN_SIZE
    sigma: float = DEFAULT_SIGMA
    window_radius: int = DEFAULT_WINDOW_RADIUS
    k1: float = DEFAULT_K1
    k2: float = DEFAULT_K2
    dynamic_range: float = DEFAULT_DYNAMIC_RANGE
    scale_weights: Tuple[float, ...] = DEFAULT_SCALE_WEIGHTS
    channel_weights: Tuple[float, ...] = DEFAULT_CHANNEL_WEIGHTS
    color_space: str = DEFAULT_COLOR_SPACE
    emit_map: bool = False
    workers: int = 0  # 0 = one worker per CPU

    def __post_init__(self):
        # JSON hands back lists; keep the weight tables hashable and immutable
        try:
            object.__setattr__(self, 'scale_weights', tuple(float(w) for w in self.scale_weights))
            object.__setattr__(self, 'channel_weights', tuple(float(w) for w in self.channel_weights))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Weight tables must be sequences of numbers: {e}") from e
        self._check_types()
        self.validate()

    def _check_types(self):
        for name in INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        for name in FLOAT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigError(f"{name} must be a finite number, got {value!r}")
        if not isinstance(self.color_space, str):
            raise ConfigError(f"color_space must be a string, got {self.color_space!r}")
        if not isinstance(self.emit_map, bool):
            raise ConfigError(f"emit_map must be true or false, got {self.emit_map!r}")

    def validate(self):
        """Raise ConfigError if any field is out of range"""
        if self.max_levels < 1:
            raise ConfigError(f"max_levels must be >= 1, got {self.max_levels}")
        if self.min_size < 1:
            raise ConfigError(f"min_size must be >= 1, got {self.min_size}")
        if self.sigma <= 0:
            raise ConfigError(f"sigma must be positive, got {self.sigma}")
        if self.window_radius < 1:
            raise ConfigError(f"window_radius must be >= 1, got {self.window_radius}")
        if self.k1 <= 0 or self.k2 <= 0:
            raise ConfigError(f"k1 and k2 must be positive, got {self.k1}, {self.k2}")
        if self.dynamic_range <= 0:
            raise ConfigError(f"dynamic_range must be positive, got {self.dynamic_range}")
        if len(self.scale_weights) < self.max_levels:
            raise ConfigError(
                f"{len(self.scale_weights)} scale weights cannot cover max_levels={self.max_levels}"
            )
        if any(w < 0 for w in self.scale_weights) or sum(self.scale_weights) <= 0:
            raise ConfigError(f"scale_weights must be non-negative with a positive sum: {self.scale_weights}")
        if not self.channel_weights or any(w < 0 for w in self.channel_weights) or self.channel_weights[0] <= 0:
            raise ConfigError(f"channel_weights must be non-negative with a positive luma weight: {self.channel_weights}")
        if self.color_space not in COLOR_SPACES:
            raise ConfigError(f"Unknown color_space '{self.color_space}', expected one of {COLOR_SPACES}")
        if self.workers < 0:
            raise ConfigError(f"workers must be >= 0, got {self.workers}")

    @property
    def resolved_workers(self) -> int:
        """Worker pool size, resolving 0 to the CPU count"""
        return self.workers or (os.cpu_count() or 1)

    def replace(self, **changes) -> 'DssimConfig':
        """Return a copy with the given fields changed"""
        try:
            return dc_replace(self, **changes)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration field: {e}") from e

    @classmethod
    def from_dict(cls, data: dict) -> 'DssimConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: str) -> 'DssimConfig':
        """Load configuration from JSON file"""
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        config = cls.from_dict(data)
        logger.debug(f"Loaded configuration from {path}")
        return config

    def to_json(self, path: str):
        """Save configuration to JSON file"""
        data = asdict(self)
        data['scale_weights'] = list(self.scale_weights)
        data['channel_weights'] = list(self.channel_weights)
        with open(path, 'w') as f:
            json.dump(data, f, indent=2)
