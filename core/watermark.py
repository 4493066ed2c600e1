"""
Forensic watermark entry points.

This module is the single entry point for callers. Every function takes
encoded image bytes plus optional config overrides and hides the raw
pixel handling, the position schedule and the frame format.

    embed_watermark        — bytes + payload  -> watermarked bytes
    extract_watermark      — bytes            -> DecodedWatermark
    has_watermark_capacity — bytes            -> bool, never raises
    get_payload_bit_length — frame size in bits
    is_probably_watermarked — quick screening, never requires a valid
                              payload to be returned to the caller

Failure philosophy:
    Embedding refuses unreadable or undersized images before any work is
    done, and the caller must never fall back to serving the original.
    Extraction only fails on unreadable images; everything else comes
    back as data.
"""

from collections.abc import Mapping

import structlog

from core.capacity import has_capacity
from core.config import WatermarkConfig
from core.decoder import DecodedWatermark, decode_watermark
from core.embedder import embed_bits
from core.errors import ImageReadError, ImageTooSmallError
from core.payload import PAYLOAD_BIT_LENGTH, WatermarkPayload, encode_payload
from core.positions import schedule_positions
from core.utils import (
    calculate_psnr,
    decode_rgba,
    encode_image,
    read_dimensions,
)

log = structlog.get_logger()

ConfigOverrides = Mapping | WatermarkConfig | None


def get_payload_bit_length() -> int:
    """Size of the embedded frame in bits."""
    return PAYLOAD_BIT_LENGTH


def embed_watermark(
    image_bytes      : bytes,
    payload          : WatermarkPayload,
    config_overrides : ConfigOverrides = None,
) -> bytes:
    """
    Embed a viewer payload into an encoded image.

    Args:
        image_bytes      : the original image (JPEG, PNG, WebP, ...)
        payload          : identity to embed, one per served copy
        config_overrides : partial WatermarkConfig fields

    Returns:
        The watermarked image, re-encoded in the source format at
        config.output_quality (lossless PNG if Pillow cannot write the
        source format).

    Raises:
        ImageReadError     : if the image cannot be read
        ImageTooSmallError : if either side is below config.min_image_size
        ValueError         : on invalid config overrides
    """
    config = WatermarkConfig.from_overrides(config_overrides)

    width, height = read_dimensions(image_bytes)
    if width < config.min_image_size or height < config.min_image_size:
        raise ImageTooSmallError(width, height, config.min_image_size)

    if not has_capacity(width, height, config):
        log.warning(
            "watermark_capacity_low",
            width       = width,
            height      = height,
            repetitions = config.repetitions,
        )

    original, fmt = decode_rgba(image_bytes)
    bits     = encode_payload(payload)
    schedule = schedule_positions(
        width, height, len(bits), config.repetitions, config.secret_key
    )
    stego = embed_bits(original, schedule, bits, config.strength)

    log.info(
        "watermark_embedded",
        width       = width,
        height      = height,
        format      = fmt,
        bits        = len(bits),
        repetitions = config.repetitions,
        psnr        = round(calculate_psnr(original, stego), 2),
    )

    return encode_image(stego, fmt, config.output_quality)


def extract_watermark(
    image_bytes      : bytes,
    config_overrides : ConfigOverrides = None,
    reference_size   : tuple[int, int] | None = None,
    offset           : tuple[int, int] = (0, 0),
) -> DecodedWatermark:
    """
    Recover the payload from a candidate image.

    Args:
        image_bytes      : the suspected leak
        config_overrides : must match the secret_key and repetitions used
                           at embed time
        reference_size   : (width, height) of the served copy, when the
                           leak is known to be a crop of it
        offset           : (dx, dy) of the crop inside the served copy

    Returns:
        DecodedWatermark — valid=False for unmarked or damaged images.

    Raises:
        ImageReadError: if the image cannot be read
    """
    config    = WatermarkConfig.from_overrides(config_overrides)
    pixels, _ = decode_rgba(image_bytes)
    return decode_watermark(pixels, config, reference_size, offset)


def has_watermark_capacity(
    image_bytes      : bytes,
    config_overrides : ConfigOverrides = None,
) -> bool:
    """True if the image is large enough to carry the frame. Never raises:
    unreadable images and invalid overrides both report False."""
    try:
        config        = WatermarkConfig.from_overrides(config_overrides)
        width, height = read_dimensions(image_bytes)
    except (ImageReadError, ValueError):
        return False
    return has_capacity(width, height, config)


def is_probably_watermarked(
    image_bytes      : bytes,
    config_overrides : ConfigOverrides = None,
) -> bool:
    """Fast screening: a valid frame decoded with confidence above 0.3."""
    try:
        result = extract_watermark(image_bytes, config_overrides)
    except ImageReadError:
        return False
    return result.probably_watermarked
