# core/errors.py

"""
Error taxonomy for the watermark codec.

Only pre-embedding problems are exceptions. Anything that goes wrong while
reading a watermark back (bad magic, bad checksum, low confidence) is
reported as data on DecodedWatermark, never raised.

Both concrete errors also subclass ValueError so callers that only know
about ValueError (the convention used across core/) still catch them.
"""


class WatermarkError(Exception):
    """Base class for all codec failures."""


class ImageReadError(WatermarkError, ValueError):
    """The image bytes could not be opened or have no readable dimensions."""


class ImageTooSmallError(WatermarkError, ValueError):
    """The image is below the configured minimum size on at least one axis."""

    def __init__(self, width: int, height: int, min_size: int):
        self.width    = width
        self.height   = height
        self.min_size = min_size
        super().__init__(
            f"Image is {width}x{height} pixels. "
            f"Watermarking requires at least {min_size}x{min_size}."
        )
