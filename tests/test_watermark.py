# tests/test_watermark.py

import io

import numpy as np
import pytest
from PIL import Image

from core.errors import ImageReadError, ImageTooSmallError, WatermarkError
from core.payload import WatermarkPayload
from core.utils import decode_rgba
from core.watermark import (
    embed_watermark,
    extract_watermark,
    get_payload_bit_length,
    has_watermark_capacity,
    is_probably_watermarked,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_gray(h=512, w=512, noise=0, seed=42) -> np.ndarray:
    """
    Near mid-grey RGB image. The decoder measures deviation from 128, so
    synthetic test carriers sit around that value.
    """
    arr = np.full((h, w, 3), 128, dtype=np.int16)
    if noise:
        rng = np.random.default_rng(seed)
        arr = arr + rng.integers(-noise, noise + 1, (h, w, 3))
    return np.clip(arr, 0, 255).astype(np.uint8)


def to_bytes(array: np.ndarray, fmt="PNG", **kwargs) -> bytes:
    out = io.BytesIO()
    Image.fromarray(array).save(out, format=fmt, **kwargs)
    return out.getvalue()


def crop_bytes(image_bytes: bytes, box: tuple) -> bytes:
    with Image.open(io.BytesIO(image_bytes)) as img:
        out = io.BytesIO()
        img.crop(box).save(out, format="PNG")
    return out.getvalue()


PAYLOAD = WatermarkPayload(
    viewer_id      = "user123",
    view_timestamp = 1_700_000_000_000,
    screenshot_id  = "screenshot123",
)


# ---------------------------------------------------------------------------
# Group 1: Round trip
# ---------------------------------------------------------------------------

def test_concrete_scenario_512():
    """user123 / screenshot123 survives a default-config round trip."""
    marked = embed_watermark(to_bytes(make_gray()), PAYLOAD)
    result = extract_watermark(marked)
    assert result.valid
    assert result.viewer_id == "user123"
    assert result.screenshot_id == "screenshot123"
    assert result.view_timestamp == 1_700_000_000_000
    assert result.confidence > 0.5


def test_roundtrip_with_mild_noise_and_custom_config():
    overrides = {"secret_key": "family-77", "repetitions": 7, "strength": 0.2}
    payload   = WatermarkPayload("p" * 28, 2**63 + 11, "s" * 32)
    marked    = embed_watermark(to_bytes(make_gray(400, 300, noise=6)), payload, overrides)
    result    = extract_watermark(marked, overrides)
    assert result.valid
    assert result.viewer_id == "p" * 28
    assert result.screenshot_id == "s" * 32
    assert result.view_timestamp == 2**63 + 11


def test_output_keeps_source_format():
    marked = embed_watermark(to_bytes(make_gray(128, 128)), PAYLOAD)
    _, fmt = decode_rgba(marked)
    assert fmt == "PNG"


def test_jpeg_carrier_round_trip():
    src    = to_bytes(make_gray(), fmt="JPEG", quality=90)
    marked = embed_watermark(src, PAYLOAD)
    _, fmt = decode_rgba(marked)
    assert fmt == "JPEG"

    result = extract_watermark(marked)
    assert result.valid
    assert result.viewer_id      == "user123"
    assert result.screenshot_id  == "screenshot123"
    assert result.view_timestamp == 1_700_000_000_000


def test_png_resaved_as_jpeg_still_traces():
    marked = embed_watermark(to_bytes(make_gray()), PAYLOAD)
    with Image.open(io.BytesIO(marked)) as img:
        resaved = to_bytes(np.array(img.convert("RGB")), fmt="JPEG", quality=85)

    result = extract_watermark(resaved)
    assert result.valid
    assert result.viewer_id == "user123"


def test_original_bytes_unchanged():
    src  = to_bytes(make_gray(128, 128))
    copy = bytes(src)
    embed_watermark(src, PAYLOAD)
    assert src == copy


def test_watermark_changes_pixels():
    src = to_bytes(make_gray(128, 128))
    marked = embed_watermark(src, PAYLOAD)
    before, _ = decode_rgba(src)
    after,  _ = decode_rgba(marked)
    assert not np.array_equal(before, after)


# ---------------------------------------------------------------------------
# Group 2: Negative controls and degradation
# ---------------------------------------------------------------------------

def test_solid_gray_is_not_watermarked():
    result = extract_watermark(to_bytes(make_gray(100, 100)))
    assert not result.valid
    assert not is_probably_watermarked(to_bytes(make_gray(100, 100)))


def test_wrong_key_does_not_recover():
    marked = embed_watermark(to_bytes(make_gray(256, 256)), PAYLOAD, {"secret_key": "A"})
    result = extract_watermark(marked, {"secret_key": "B"})
    assert not result.valid


def test_center_crop_degrades_gracefully():
    marked = embed_watermark(to_bytes(make_gray(200, 200)), PAYLOAD)
    crop   = crop_bytes(marked, (25, 25, 175, 175))
    result = extract_watermark(crop)
    assert 0.0 <= result.confidence <= 1.0


def test_center_crop_with_reference_geometry():
    marked = embed_watermark(to_bytes(make_gray(200, 200)), PAYLOAD)
    crop   = crop_bytes(marked, (25, 25, 175, 175))
    result = extract_watermark(crop, reference_size=(200, 200), offset=(25, 25))
    assert 0.0 < result.confidence <= 1.0


def test_probably_watermarked_on_marked_image():
    marked = embed_watermark(to_bytes(make_gray(256, 256)), PAYLOAD)
    assert is_probably_watermarked(marked)


# ---------------------------------------------------------------------------
# Group 3: Fatal pre-embedding errors
# ---------------------------------------------------------------------------

def test_image_below_min_size_rejected():
    with pytest.raises(ImageTooSmallError):
        embed_watermark(to_bytes(make_gray(32, 200)), PAYLOAD)


def test_min_size_override():
    marked = embed_watermark(to_bytes(make_gray(32, 32)), PAYLOAD, {"min_image_size": 16})
    assert isinstance(marked, bytes)


def test_unreadable_image_rejected():
    with pytest.raises(ImageReadError):
        embed_watermark(b"definitely not an image", PAYLOAD)
    with pytest.raises(ImageReadError):
        extract_watermark(b"")


def test_codec_errors_share_a_base():
    assert issubclass(ImageReadError, WatermarkError)
    assert issubclass(ImageTooSmallError, ValueError)


# ---------------------------------------------------------------------------
# Group 4: Capacity and constants
# ---------------------------------------------------------------------------

def test_capacity_boundaries():
    assert not has_watermark_capacity(to_bytes(make_gray(8, 8)))
    assert has_watermark_capacity(to_bytes(make_gray(1000, 1000)))


def test_capacity_never_raises():
    assert has_watermark_capacity(b"garbage") is False
    assert has_watermark_capacity(b"garbage", {"repetitions": 0}) is False
    assert has_watermark_capacity(to_bytes(make_gray(1000, 1000)), {"strength": "high"}) is False


def test_payload_bit_length():
    assert get_payload_bit_length() == 592
