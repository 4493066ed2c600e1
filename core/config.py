# core/config.py

"""
Watermark embedding parameters.

WatermarkConfig is a frozen value object. Callers pass partial overrides
as a plain mapping and get a fresh, validated copy back; nothing in the
codec ever mutates a config after construction.
"""

from dataclasses import dataclass, fields, replace
from collections.abc import Mapping

# Used when a caller supplies no key at all. Deployments set their own
# through WATERMARK_SECRET_KEY; images embedded with one key cannot be
# read with another.
DEFAULT_SECRET_KEY = "tracemark-default-key"


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return _is_int(value) or isinstance(value, float)


@dataclass(frozen=True)
class WatermarkConfig:
    """
    Tunable embedding parameters.

    Attributes:
        strength       : fraction of the 0-255 channel range used as the
                         per-pixel perturbation, in (0, 1]
        repetitions    : how many pixels carry each payload bit
        secret_key     : seeds the position schedule, must match on decode
        min_image_size : smallest width/height accepted for embedding
        output_quality : re-encoding quality for lossy carriers, 0-100
    """
    strength       : float = 0.15
    repetitions    : int   = 5
    secret_key     : str   = DEFAULT_SECRET_KEY
    min_image_size : int   = 64
    output_quality : int   = 90

    def __post_init__(self):
        if not _is_number(self.strength) or not (0.0 < self.strength <= 1.0):
            raise ValueError(
                f"strength must be in (0, 1], got {self.strength}"
            )
        if not _is_int(self.repetitions) or self.repetitions < 1:
            raise ValueError(
                f"repetitions must be a positive integer, got {self.repetitions}"
            )
        if not isinstance(self.secret_key, str) or not self.secret_key:
            raise ValueError("secret_key must be a non-empty string")
        if not _is_int(self.min_image_size) or self.min_image_size < 1:
            raise ValueError(
                f"min_image_size must be at least 1, got {self.min_image_size}"
            )
        if not _is_int(self.output_quality) or not (0 <= self.output_quality <= 100):
            raise ValueError(
                f"output_quality must be in [0, 100], got {self.output_quality}"
            )

    @property
    def delta(self) -> int:
        """Signed-magnitude perturbation applied to one channel value."""
        return int(round(self.strength * 255))

    @classmethod
    def from_overrides(
        cls, overrides: "Mapping | WatermarkConfig | None" = None
    ) -> "WatermarkConfig":
        """
        Merge a partial mapping of overrides onto the defaults.

        Raises:
            ValueError: on unknown keys or out-of-range values
        """
        if overrides is None:
            return cls()
        if isinstance(overrides, WatermarkConfig):
            return replace(overrides)

        known   = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(
                f"Unknown watermark config keys: {sorted(unknown)}. "
                f"Valid: {sorted(known)}"
            )
        return replace(cls(), **dict(overrides))
