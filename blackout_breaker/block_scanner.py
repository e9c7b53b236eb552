"""
Pixel-level redaction block detection.

Finds solid black rectangles in a rendered page buffer by sampling rather
than flood filling:
1. Seed on a coarse grid of black pixels
2. Grow each seed horizontally along its row, then row by row vertically
3. Filter by minimum size and sampled black density
4. Merge adjacent candidates into final blocks
"""

import logging

import numpy as np

from .models import PixelBuffer, Rectangle
from .region_merger import merge_regions


logger = logging.getLogger(__name__)

# Stride used when checking that a newly reached row is still solid
ROW_SAMPLE_STRIDE = 3

# Stride used on both axes when measuring black density
DENSITY_SAMPLE_STRIDE = 2


def _expand_horizontally(mask: np.ndarray, x: int, y: int) -> tuple[int, int]:
    """Walk left and right along row ``y`` while pixels stay black.

    Growth stops at the buffer edge; pixels outside the buffer are never black.
    """
    row = mask[y]

    gaps_left = np.flatnonzero(~row[:x])
    min_x = int(gaps_left[-1]) + 1 if gaps_left.size else 0

    gaps_right = np.flatnonzero(~row[x + 1:])
    max_x = x + int(gaps_right[0]) if gaps_right.size else row.size - 1

    return min_x, max_x


def _row_is_solid(mask: np.ndarray, y: int, min_x: int, max_x: int) -> bool:
    """Check the span of a row at a stride of ROW_SAMPLE_STRIDE pixels."""
    return bool(mask[y, min_x:max_x + 1:ROW_SAMPLE_STRIDE].all())


def _expand_vertically(
    mask: np.ndarray,
    min_x: int,
    max_x: int,
    y: int
) -> tuple[int, int]:
    """Walk up and down one row at a time while sampled rows stay solid."""
    height = mask.shape[0]

    min_y = y
    while min_y > 0 and _row_is_solid(mask, min_y - 1, min_x, max_x):
        min_y -= 1

    max_y = y
    while max_y < height - 1 and _row_is_solid(mask, max_y + 1, min_x, max_x):
        max_y += 1

    return min_y, max_y


def _mark_visited(
    visited: np.ndarray,
    grid_step: int,
    min_x: int,
    max_x: int,
    min_y: int,
    max_y: int
) -> None:
    """Mark every grid point inside the inclusive box as visited."""
    # First grid index at or after the minimum, last at or before the maximum
    gx0 = -(-min_x // grid_step)
    gy0 = -(-min_y // grid_step)
    gx1 = max_x // grid_step
    gy1 = max_y // grid_step
    visited[gy0:gy1 + 1, gx0:gx1 + 1] = True


def sample_density(mask: np.ndarray, rect: Rectangle) -> float:
    """
    Fraction of black samples inside a rectangle.

    Samples every DENSITY_SAMPLE_STRIDE pixels on both axes over the
    inclusive extent [x, x + width] x [y, y + height].

    Args:
        mask: Boolean black mask shaped (height, width)
        rect: Rectangle to sample

    Returns:
        Density between 0 and 1
    """
    samples = mask[
        rect.y:rect.y1 + 1:DENSITY_SAMPLE_STRIDE,
        rect.x:rect.x1 + 1:DENSITY_SAMPLE_STRIDE,
    ]
    if samples.size == 0:
        return 0.0
    return float(samples.mean())


def find_candidates(
    buffer: PixelBuffer,
    black_threshold: int = 30,
    grid_step: int = 5,
    min_width: int = 20,
    min_height: int = 8,
    density_threshold: float = 0.85
) -> list[Rectangle]:
    """
    Detect candidate redaction rectangles without merging them.

    Args:
        buffer: Rendered page
        black_threshold: R, G and B must all be strictly below this
        grid_step: Seed grid spacing in pixels
        min_width: Minimum rectangle width in pixels
        min_height: Minimum rectangle height in pixels
        density_threshold: Sampled black density a rectangle must exceed

    Returns:
        Candidate rectangles in seed (row-major) order
    """
    mask = buffer.black_mask(black_threshold)
    height, width = mask.shape

    # Visited flags for grid points only; local to this call
    visited = np.zeros(
        (-(-height // grid_step), -(-width // grid_step)),
        dtype=bool
    )

    candidates = []
    rejected = 0

    # Only black grid points can seed a block; argwhere keeps row-major order
    seeds = np.argwhere(mask[::grid_step, ::grid_step])

    for gy, gx in seeds:
        if visited[gy, gx]:
            continue

        x = int(gx) * grid_step
        y = int(gy) * grid_step

        min_x, max_x = _expand_horizontally(mask, x, y)
        min_y, max_y = _expand_vertically(mask, min_x, max_x, y)

        _mark_visited(visited, grid_step, min_x, max_x, min_y, max_y)

        rect = Rectangle(min_x, min_y, max_x - min_x, max_y - min_y)

        if rect.width < min_width or rect.height < min_height:
            rejected += 1
            continue

        if sample_density(mask, rect) <= density_threshold:
            rejected += 1
            continue

        candidates.append(rect)

    logger.debug(
        f"Scanned {width}x{height} buffer: {len(candidates)} candidates, "
        f"{rejected} rejected"
    )
    return candidates


def scan(
    buffer: PixelBuffer,
    black_threshold: int = 30,
    grid_step: int = 5,
    min_width: int = 20,
    min_height: int = 8,
    density_threshold: float = 0.85,
    merge_gap: int = 10
) -> list[Rectangle]:
    """
    Detect redaction blocks in a page buffer.

    Runs candidate detection and merges adjacent candidates before
    returning. A buffer without black pixels yields an empty list.

    Args:
        buffer: Rendered page
        black_threshold: R, G and B must all be strictly below this
        grid_step: Seed grid spacing in pixels
        min_width: Minimum rectangle width in pixels
        min_height: Minimum rectangle height in pixels
        density_threshold: Sampled black density a rectangle must exceed
        merge_gap: Edge separation in pixels under which blocks merge

    Returns:
        Merged rectangles, top-to-bottom then left-to-right
    """
    candidates = find_candidates(
        buffer,
        black_threshold=black_threshold,
        grid_step=grid_step,
        min_width=min_width,
        min_height=min_height,
        density_threshold=density_threshold,
    )
    return merge_regions(candidates, gap=merge_gap)
