# core/positions.py

"""
Position scheduler.

Maps every payload bit to `repetitions` pixel coordinates inside a safe
zone that excludes the outer 10% of the image on all four sides. The
schedule is a pure function of (width, height, bit_count, repetitions,
seed): the embedder and the decoder call it with identical arguments and
get identical coordinates back.

Coordinates are not deduplicated. Two draws may land on the same pixel;
the embedder adds each bit's delta in turn, so deltas on a shared pixel
accumulate (clamped after every step), and the decoder simply reads
whatever is there.
"""

from core.sequence import SequenceGenerator

MARGIN_PERCENT = 10

Schedule = list[list[tuple[int, int]]]


def safe_zone(width: int, height: int) -> tuple[int, int, int, int]:
    """
    Return (margin_x, margin_y, safe_width, safe_height) for an image.

    Raises:
        ValueError: if either dimension is not positive
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

    margin_x = width * MARGIN_PERCENT // 100
    margin_y = height * MARGIN_PERCENT // 100
    return margin_x, margin_y, width - 2 * margin_x, height - 2 * margin_y


def schedule_positions(
    width       : int,
    height      : int,
    bit_count   : int,
    repetitions : int,
    seed        : str,
) -> Schedule:
    """
    Compute the embedding coordinates for every bit.

    Draw order is fixed: for each bit, for each repetition, one x draw
    then one y draw from a single generator built from `seed`.

    Returns:
        A list of length bit_count; entry i holds the `repetitions`
        (x, y) coordinates that carry bit i.

    Raises:
        ValueError: on non-positive dimensions, bit_count or repetitions
    """
    if bit_count <= 0:
        raise ValueError(f"bit_count must be positive, got {bit_count}")
    if repetitions <= 0:
        raise ValueError(f"repetitions must be positive, got {repetitions}")

    margin_x, margin_y, safe_w, safe_h = safe_zone(width, height)
    rng = SequenceGenerator(seed)

    schedule = []
    for _ in range(bit_count):
        coords = []
        for _ in range(repetitions):
            x = margin_x + rng.next_int(safe_w)
            y = margin_y + rng.next_int(safe_h)
            coords.append((x, y))
        schedule.append(coords)
    return schedule
