"""
Spread-spectrum embedder.

Each payload bit is written into every pixel of its repetition set by
pushing one colour channel up (bit 1) or down (bit 0) by a fixed delta.
The decoder measures each pixel's deviation from mid-grey and averages
over the set, so the bit survives as long as most of its pixels keep the
sign of their perturbation.

Works on raw (H, W, 4) RGBA arrays only. Decoding and re-encoding the
carrier format is the image codec's job (core.utils).
"""

import numpy as np

from core.positions import Schedule

# Green carries the most luminance in RGB, so it survives lossy
# re-encoding better than red or blue.
GREEN_CHANNEL = 1


def embed_bits(
    pixels   : np.ndarray,
    schedule : Schedule,
    bits     : list[int],
    strength : float,
    channel  : int = GREEN_CHANNEL,
) -> np.ndarray:
    """
    Return a copy of `pixels` with every bit written at its scheduled
    coordinates.

    For each coordinate the channel value becomes
    clamp(value + round(strength * 255) * (+1 if bit else -1), 0, 255).
    Coordinates shared by several bits accumulate every delta, applied in
    schedule order and clamped after each step.

    Args:
        pixels   : (H, W, C) uint8 array, left untouched
        schedule : per-bit coordinate lists from schedule_positions()
        bits     : frame bits, same length as schedule
        strength : perturbation as a fraction of the full channel range
        channel  : index of the channel to perturb

    Returns:
        The modified working copy.

    Raises:
        ValueError: if schedule and bits differ in length, or the channel
                    index is out of range
    """
    if len(schedule) != len(bits):
        raise ValueError(
            f"Schedule covers {len(schedule)} bits but {len(bits)} bits "
            f"were supplied."
        )
    if pixels.ndim != 3 or not (0 <= channel < pixels.shape[2]):
        raise ValueError(
            f"Channel {channel} is not available in an array of shape "
            f"{pixels.shape}."
        )

    working   = pixels.copy()
    height, width = working.shape[:2]
    magnitude = int(round(strength * 255))

    for bit, coords in zip(bits, schedule):
        delta = magnitude if bit else -magnitude
        for x, y in coords:
            if not (0 <= x < width and 0 <= y < height):
                raise ValueError(
                    f"Scheduled coordinate ({x}, {y}) lies outside a "
                    f"{width}x{height} image."
                )
            value = int(working[y, x, channel]) + delta
            working[y, x, channel] = min(255, max(0, value))

    return working
