"""
Watermark extractor.

Regenerates the position schedule, reads every scheduled pixel, and
recovers each bit by majority vote weighted by deviation from mid-grey:

    deviation  = channel value - 128
    bit        = 1 if mean(deviation) > 0 else 0
    confidence = min(1, |mean(deviation)| / 30)

The overall confidence is the mean of the per-bit confidences across the
whole frame. The recovered bits are then parsed by the payload codec,
which independently checks magic, version and checksum.

Failure philosophy:
    The decoder always produces an answer. Pure noise, solid colour and
    cropped images yield valid=False and/or low confidence, never an
    exception. A bit whose every repetition fell outside a cropped image
    defaults to 0 with zero confidence.
"""

from dataclasses import dataclass

import numpy as np
import structlog

from core.config import WatermarkConfig
from core.embedder import GREEN_CHANNEL
from core.payload import PAYLOAD_BIT_LENGTH, decode_payload
from core.positions import Schedule, schedule_positions

log = structlog.get_logger()

NEUTRAL_MIDPOINT = 128
# Average deviation treated as a fully confident vote
STRONG_DEVIATION = 30.0
# Screening threshold used by is_probably_watermarked()
SCREENING_CONFIDENCE = 0.3


@dataclass
class DecodedWatermark:
    """
    Structured output from the watermark decoder.

    Attributes:
        viewer_id      : recovered viewer id (garbage if valid is False)
        view_timestamp : recovered view time, ms since epoch
        screenshot_id  : recovered screenshot id
        confidence     : mean per-bit vote strength in [0, 1]
        valid          : True only if magic, version and checksum all verify
    """
    viewer_id      : str
    view_timestamp : int
    screenshot_id  : str
    confidence     : float
    valid          : bool

    def to_dict(self) -> dict:
        return {
            "viewer_id"      : self.viewer_id,
            "view_timestamp" : self.view_timestamp,
            "screenshot_id"  : self.screenshot_id,
            "confidence"     : round(self.confidence, 4),
            "valid"          : self.valid,
        }

    def __str__(self):
        status = "VALID" if self.valid else "INVALID"
        return (
            f"[WATERMARK {status}]\n"
            f"Viewer     : {self.viewer_id!r}\n"
            f"Timestamp  : {self.view_timestamp}\n"
            f"Screenshot : {self.screenshot_id!r}\n"
            f"Confidence : {self.confidence:.3f}"
        )

    @property
    def probably_watermarked(self) -> bool:
        return self.valid and self.confidence > SCREENING_CONFIDENCE


def extract_bits(
    pixels    : np.ndarray,
    schedule  : Schedule,
    bit_count : int = PAYLOAD_BIT_LENGTH,
    channel   : int = GREEN_CHANNEL,
    offset    : tuple[int, int] = (0, 0),
) -> tuple[list[int], float]:
    """
    Recover bits from a pixel array by weighted majority vote.

    Args:
        pixels    : (H, W, C) uint8 array of the candidate image
        schedule  : per-bit coordinate lists, in the geometry the image
                    was embedded with
        bit_count : number of bits to recover
        channel   : index of the channel that was perturbed
        offset    : (dx, dy) position of this buffer's top-left corner
                    inside the embedded image; (0, 0) for an uncropped copy

    Returns:
        (bits, confidence) — bit_count bits and the mean per-bit confidence.
    """
    height, width = pixels.shape[:2]
    dx, dy = offset
    plane  = pixels[:, :, channel].astype(np.int32)

    bits       = []
    confidence = 0.0

    for index in range(bit_count):
        coords = schedule[index] if index < len(schedule) else []

        sum_deviation = 0
        votes         = 0
        for x, y in coords:
            px, py = x - dx, y - dy
            if 0 <= px < width and 0 <= py < height:
                sum_deviation += int(plane[py, px]) - NEUTRAL_MIDPOINT
                votes += 1

        if votes == 0:
            # Every repetition was cropped away
            bits.append(0)
            continue

        mean = sum_deviation / votes
        bits.append(1 if mean > 0 else 0)
        confidence += min(1.0, abs(mean) / STRONG_DEVIATION)

    return bits, confidence / bit_count if bit_count else 0.0


def decode_watermark(
    pixels         : np.ndarray,
    config         : WatermarkConfig,
    reference_size : tuple[int, int] | None = None,
    offset         : tuple[int, int] = (0, 0),
) -> DecodedWatermark:
    """
    Run the full decode path on a raw pixel array.

    The schedule is regenerated from the buffer's own (width, height)
    unless `reference_size` gives the dimensions the image had when it
    was embedded, which lets a cropped leak be read at the right
    coordinates together with `offset`.
    """
    height, width = pixels.shape[:2]
    ref_w, ref_h  = reference_size if reference_size else (width, height)

    schedule = schedule_positions(
        ref_w, ref_h, PAYLOAD_BIT_LENGTH, config.repetitions, config.secret_key
    )
    bits, confidence = extract_bits(
        pixels, schedule, PAYLOAD_BIT_LENGTH, offset=offset
    )
    frame = decode_payload(bits)

    log.debug(
        "watermark_extracted",
        width          = width,
        height         = height,
        reference_size = (ref_w, ref_h),
        magic_valid    = frame.magic_valid,
        version_valid  = frame.version_valid,
        checksum_valid = frame.checksum_valid,
        confidence     = round(confidence, 4),
    )

    return DecodedWatermark(
        viewer_id      = frame.payload.viewer_id,
        view_timestamp = frame.payload.view_timestamp,
        screenshot_id  = frame.payload.screenshot_id,
        confidence     = confidence,
        valid          = frame.valid,
    )
