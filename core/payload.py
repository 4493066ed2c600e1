# core/payload.py

"""
Payload codec — the bit frame embedded into every watermarked image.

Frame layout (big-endian, MSB-first):

    field          bytes   bits
    magic            4      32    b"WMRK"
    version          1       8    FORMAT_VERSION
    viewer_id       28     224    ASCII, NUL-padded
    view_timestamp   8      64    unsigned ms since epoch
    screenshot_id   32     256    ASCII, NUL-padded
    checksum         1       8    XOR of every preceding byte

PAYLOAD_BIT_LENGTH is derived from these widths once, here. The embedder,
the decoder and the capacity estimator all import it from this module.
"""

import struct
from dataclasses import dataclass

from core.utils import bytes_to_bits, bits_to_bytes

MAGIC          = b"WMRK"
FORMAT_VERSION = 1

VIEWER_ID_BYTES     = 28
TIMESTAMP_BYTES     = 8
SCREENSHOT_ID_BYTES = 32
CHECKSUM_BYTES      = 1

_HEADER_BYTES = len(MAGIC) + 1
_BODY_BYTES   = VIEWER_ID_BYTES + TIMESTAMP_BYTES + SCREENSHOT_ID_BYTES

FRAME_BYTES        = _HEADER_BYTES + _BODY_BYTES + CHECKSUM_BYTES
PAYLOAD_BIT_LENGTH = FRAME_BYTES * 8

MAX_TIMESTAMP = (1 << 64) - 1


@dataclass(frozen=True)
class WatermarkPayload:
    """
    The identity embedded into one served copy.

    Strings longer than their field are truncated on encode, never
    rejected. The timestamp must fit in an unsigned 64-bit integer.
    """
    viewer_id      : str
    view_timestamp : int
    screenshot_id  : str

    def __post_init__(self):
        if not (0 <= self.view_timestamp <= MAX_TIMESTAMP):
            raise ValueError(
                f"view_timestamp must fit in 64 unsigned bits, "
                f"got {self.view_timestamp}"
            )


@dataclass(frozen=True)
class FrameDecodeResult:
    """Positional parse of a frame plus three independent validity checks."""
    payload        : WatermarkPayload
    magic_valid    : bool
    version_valid  : bool
    checksum_valid : bool

    @property
    def valid(self) -> bool:
        return self.magic_valid and self.version_valid and self.checksum_valid


# ---------------------------------------------------------------------------
# Fixed-width field helpers
# ---------------------------------------------------------------------------

def pad_field(text: str, width: int) -> bytes:
    """ASCII-encode text, then truncate or NUL-pad it to exactly width bytes."""
    raw = text.encode("ascii", errors="replace")
    return raw[:width].ljust(width, b"\x00")


def unpad_field(raw: bytes) -> str:
    """Strip trailing NUL padding and decode; undecodable bytes become U+FFFD."""
    return raw.rstrip(b"\x00").decode("ascii", errors="replace")


def xor_checksum(data: bytes) -> int:
    checksum = 0
    for byte in data:
        checksum ^= byte
    return checksum


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------

def encode_payload(payload: WatermarkPayload) -> list[int]:
    """Build the PAYLOAD_BIT_LENGTH-bit frame for a payload."""
    body = (
        MAGIC
        + bytes([FORMAT_VERSION])
        + pad_field(payload.viewer_id, VIEWER_ID_BYTES)
        + struct.pack(">Q", payload.view_timestamp)
        + pad_field(payload.screenshot_id, SCREENSHOT_ID_BYTES)
    )
    frame = body + bytes([xor_checksum(body)])
    return bytes_to_bits(frame)


def decode_payload(bits: list[int]) -> FrameDecodeResult:
    """
    Parse a frame positionally and verify magic, version and checksum.

    Never raises: input of the wrong length is truncated or zero-padded to
    PAYLOAD_BIT_LENGTH, and every field is recovered whether or not the
    checks pass.
    """
    bits  = [int(b) & 1 for b in list(bits)[:PAYLOAD_BIT_LENGTH]]
    bits += [0] * (PAYLOAD_BIT_LENGTH - len(bits))
    frame = bits_to_bytes(bits)

    magic   = frame[:len(MAGIC)]
    version = frame[len(MAGIC)]

    offset = _HEADER_BYTES
    viewer_raw = frame[offset:offset + VIEWER_ID_BYTES]
    offset += VIEWER_ID_BYTES
    (timestamp,) = struct.unpack(">Q", frame[offset:offset + TIMESTAMP_BYTES])
    offset += TIMESTAMP_BYTES
    screenshot_raw = frame[offset:offset + SCREENSHOT_ID_BYTES]
    offset += SCREENSHOT_ID_BYTES
    transmitted = frame[offset]

    payload = WatermarkPayload(
        viewer_id      = unpad_field(viewer_raw),
        view_timestamp = timestamp,
        screenshot_id  = unpad_field(screenshot_raw),
    )

    return FrameDecodeResult(
        payload        = payload,
        magic_valid    = magic == MAGIC,
        version_valid  = version == FORMAT_VERSION,
        checksum_valid = xor_checksum(frame[:offset]) == transmitted,
    )
