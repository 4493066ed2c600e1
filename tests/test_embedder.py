# tests/test_embedder.py

import numpy as np
import pytest

from core.embedder import GREEN_CHANNEL, embed_bits


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_rgba(h=64, w=64, fill=128) -> np.ndarray:
    arr = np.full((h, w, 4), fill, dtype=np.uint8)
    arr[:, :, 3] = 255
    return arr


# ---------------------------------------------------------------------------
# Group 1: Perturbation values
# ---------------------------------------------------------------------------

def test_one_bit_raises_channel():
    out = embed_bits(make_rgba(), [[(5, 7)]], [1], 0.15)
    assert out[7, 5, GREEN_CHANNEL] == 128 + 38


def test_zero_bit_lowers_channel():
    out = embed_bits(make_rgba(), [[(5, 7)]], [0], 0.15)
    assert out[7, 5, GREEN_CHANNEL] == 128 - 38


def test_values_clamped():
    high = embed_bits(make_rgba(fill=250), [[(1, 1)]], [1], 0.5)
    low  = embed_bits(make_rgba(fill=5),   [[(1, 1)]], [0], 0.5)
    assert high[1, 1, GREEN_CHANNEL] == 255
    assert low[1, 1, GREEN_CHANNEL] == 0


def test_only_target_channel_changes():
    src = make_rgba()
    out = embed_bits(src, [[(3, 3), (10, 20)]], [1], 0.2)
    diff = out.astype(int) - src.astype(int)
    assert np.count_nonzero(diff[:, :, GREEN_CHANNEL]) == 2
    for ch in (0, 2, 3):
        assert np.count_nonzero(diff[:, :, ch]) == 0


def test_custom_channel():
    out = embed_bits(make_rgba(), [[(0, 0)]], [1], 0.1, channel=2)
    assert out[0, 0, 2] == 128 + 26
    assert out[0, 0, GREEN_CHANNEL] == 128


def test_repeated_coordinates_accumulate_in_order():
    """Later writes apply on top of earlier ones; nothing is deduplicated."""
    out = embed_bits(make_rgba(), [[(2, 2)], [(2, 2)]], [1, 0], 0.15)
    assert out[2, 2, GREEN_CHANNEL] == 128

    out = embed_bits(make_rgba(), [[(2, 2), (2, 2)]], [1], 0.15)
    assert out[2, 2, GREEN_CHANNEL] == 128 + 76


# ---------------------------------------------------------------------------
# Group 2: Buffer ownership
# ---------------------------------------------------------------------------

def test_caller_buffer_untouched():
    src  = make_rgba()
    copy = src.copy()
    out  = embed_bits(src, [[(1, 1), (2, 2)]], [1], 0.3)
    assert np.array_equal(src, copy)
    assert not np.shares_memory(src, out)


# ---------------------------------------------------------------------------
# Group 3: Invalid input
# ---------------------------------------------------------------------------

def test_length_mismatch_rejected():
    with pytest.raises(ValueError):
        embed_bits(make_rgba(), [[(1, 1)]], [1, 0], 0.1)


def test_out_of_bounds_coordinate_rejected():
    with pytest.raises(ValueError):
        embed_bits(make_rgba(h=10, w=10), [[(10, 0)]], [1], 0.1)


def test_missing_channel_rejected():
    with pytest.raises(ValueError):
        embed_bits(make_rgba(), [[(0, 0)]], [1], 0.1, channel=4)
