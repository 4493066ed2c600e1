import io

import numpy as np
from PIL import Image, UnidentifiedImageError

from core.errors import ImageReadError

# Formats re-encoded with a quality setting
LOSSY_FORMATS = {"JPEG", "WEBP"}
# Formats written back as-is; anything else falls back to PNG
WRITABLE_FORMATS = {"PNG", "TIFF", "BMP"} | LOSSY_FORMATS
FALLBACK_FORMAT = "PNG"

RGBA_CHANNELS = 4


def read_dimensions(image_bytes: bytes) -> tuple[int, int]:
    """
    Report (width, height) of an encoded image without decoding pixels.

    Raises:
        ImageReadError: if the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError, TypeError) as e:
        raise ImageReadError(f"Could not read image dimensions: {e}") from e

    if width <= 0 or height <= 0:
        raise ImageReadError(f"Image reports invalid size {width}x{height}.")
    return width, height


def decode_rgba(image_bytes: bytes) -> tuple[np.ndarray, str]:
    """
    Decode an encoded image into an (H, W, 4) uint8 RGBA array alongside
    the detected source format (Pillow's name, e.g. "JPEG", "PNG").

    Raises:
        ImageReadError: if the bytes are not a decodable image.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            fmt   = (img.format or FALLBACK_FORMAT).upper()
            array = np.array(img.convert("RGBA"), dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError, TypeError) as e:
        raise ImageReadError(f"Could not decode image: {e}") from e
    return array, fmt


def encode_image(array: np.ndarray, fmt: str, quality: int) -> bytes:
    """
    Re-encode an (H, W, 4) RGBA array into the given carrier format.

    JPEG drops alpha and keeps full-resolution chroma (4:4:4) so that
    single-pixel channel perturbations are not averaged away by
    subsampling. Formats Pillow cannot write fall back to lossless PNG.
    """
    fmt = (fmt or FALLBACK_FORMAT).upper()
    if fmt == "MPO":
        # multi-picture JPEGs from phone cameras
        fmt = "JPEG"
    if fmt not in WRITABLE_FORMATS:
        fmt = FALLBACK_FORMAT

    img = Image.fromarray(array.astype(np.uint8))
    # Fully opaque sources go back out without an alpha channel
    if fmt in ("JPEG", "BMP") or (img.mode == "RGBA" and (array[:, :, 3] == 255).all()):
        img = img.convert("RGB")
    out = io.BytesIO()

    if fmt == "JPEG":
        img.save(out, format="JPEG", quality=quality, subsampling=0)
    elif fmt == "WEBP":
        img.save(out, format="WEBP", quality=quality)
    else:
        img.save(out, format=fmt)

    return out.getvalue()


def bytes_to_bits(data: bytes) -> list[int]:
    """Convert bytes to a flat MSB-first list of bits (ints, 0 or 1)."""
    bits = []
    for byte in data:
        for i in range(7, -1, -1):
            bits.append((byte >> i) & 1)
    return bits


def bits_to_bytes(bits: list[int]) -> bytes:
    """
    Convert a flat MSB-first list of bits back to bytes.

    Raises:
        ValueError: if the bit list length is not a multiple of 8.
    """
    if len(bits) % 8 != 0:
        raise ValueError(
            f"Bit list length {len(bits)} is not a multiple of 8."
        )

    byte_array = bytearray()
    for i in range(0, len(bits), 8):
        byte = 0
        for j in range(8):
            byte = (byte << 1) | (bits[i + j] & 1)
        byte_array.append(byte)
    return bytes(byte_array)


def calculate_psnr(original: np.ndarray, modified: np.ndarray) -> float:
    """
    Calculate Peak Signal-to-Noise Ratio between two images.
    Higher is better. Returns float('inf') if the images are identical.
    """
    original = original.astype(np.float64)
    modified = modified.astype(np.float64)

    mse = np.mean((original - modified) ** 2)
    if mse == 0:
        return float("inf")

    max_pixel = 255.0
    return 20 * np.log10(max_pixel / np.sqrt(mse))
