# core/capacity.py

"""
Capacity estimator.

Heuristic guard against visibly over-dense embedding, not a hard bound.
The safe zone keeps 80% of each axis (0.8 x 0.8 = 0.64 of the area) and
we ask for at least SPACING_FACTOR safe pixels per embedded position.
An image that fails this check can still be embedded; the watermark is
just more likely to be visible and to self-collide.
"""

from core.config import WatermarkConfig
from core.payload import PAYLOAD_BIT_LENGTH

SAFE_AREA_FRACTION = 0.64
SPACING_FACTOR     = 10


def positions_needed(config: WatermarkConfig) -> int:
    return PAYLOAD_BIT_LENGTH * config.repetitions


def has_capacity(width: int, height: int, config: WatermarkConfig) -> bool:
    """True if a width x height image has room for the full frame."""
    if width <= 0 or height <= 0:
        return False
    safe_pixels = width * height * SAFE_AREA_FRACTION
    return safe_pixels / SPACING_FACTOR >= positions_needed(config)
