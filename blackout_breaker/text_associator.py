"""
Hidden text recovery for detected regions.

Maps each text fragment from native layout space into raster space and
assigns it to the region that hides it:
- At least half of the fragment's width must lie inside the region
- The fragment's vertical centre must lie inside the region
- Each fragment is assigned to at most one region per page

Assigned fragments are then put into reading order.
"""

import logging
import math
from typing import Optional

from .models import HiddenText, PageTransform, Region, TextFragment


logger = logging.getLogger(__name__)

# Placeholder text some producers lay under redaction bars
OBSTRUCTION_SENTINEL = "1111"

# Average character width as a fraction of font size, used when a fragment
# carries no width. Depends on the document's actual font.
FALLBACK_WIDTH_RATIO = 0.6

DEFAULT_FONT_SIZE = 12.0


def is_recoverable(fragment: TextFragment) -> bool:
    """Check that a fragment carries real text (not blank, not the sentinel)."""
    text = fragment.text.strip()
    return bool(text) and text != OBSTRUCTION_SENTINEL


def fragment_box(
    fragment: TextFragment,
    transform: PageTransform,
    fallback_width_ratio: float = FALLBACK_WIDTH_RATIO
) -> Optional[tuple[float, float, float, float]]:
    """
    Compute a fragment's raster-space box.

    The origin is a baseline, so the box extends upward from it by the
    scaled font size.

    Args:
        fragment: Text fragment in native units
        transform: Native-to-raster transform
        fallback_width_ratio: Character width / font size when the fragment
            has no width

    Returns:
        (left, top, right, bottom) in raster pixels, or None if any value is
        not finite
    """
    font_size = abs(fragment.font_size) or DEFAULT_FONT_SIZE
    width = fragment.width or len(fragment.text) * font_size * fallback_width_ratio

    x, y = transform.apply(fragment.x, fragment.y)
    scaled_width = width * abs(transform.scale_x)
    scaled_height = transform.scale_length(font_size)

    box = (x, y - scaled_height, x + scaled_width, y)
    if not all(math.isfinite(v) for v in box):
        return None
    return box


def _to_hidden_text(
    fragment: TextFragment,
    box: tuple[float, float, float, float],
    transform: PageTransform
) -> HiddenText:
    left, top, right, bottom = box
    font_size = abs(fragment.font_size) or DEFAULT_FONT_SIZE
    return HiddenText(
        text=fragment.text,
        x=left,
        y=bottom,
        width=right - left,
        height=bottom - top,
        font_size=transform.scale_length(font_size),
        index=fragment.index,
        font_name=fragment.font_name,
    )


def _match_score(
    box: tuple[float, float, float, float],
    region: Region,
    min_overlap: float
) -> Optional[tuple[float, float]]:
    """
    Score how a fragment box sits inside a region.

    Returns:
        (vertical_overlap, horizontal_ratio) if the fragment qualifies,
        otherwise None
    """
    left, top, right, bottom = box
    rect = region.rect

    text_width = right - left
    if text_width <= 0:
        return None

    overlap_width = max(0.0, min(right, rect.x1) - max(left, rect.x))
    overlap_height = max(0.0, min(bottom, rect.y1) - max(top, rect.y))

    horizontal_ratio = overlap_width / text_width
    center_y = (top + bottom) / 2
    vertical_inside = rect.y <= center_y <= rect.y1

    if horizontal_ratio >= min_overlap and vertical_inside and overlap_height > 0:
        return (overlap_height, horizontal_ratio)
    return None


def sort_reading_order(
    hidden: list[HiddenText],
    line_tolerance: float = 5.0
) -> list[HiddenText]:
    """
    Order recovered fragments top-to-bottom, then left-to-right.

    Fragments whose baselines are within ``line_tolerance`` of the first
    fragment of a line belong to that line.

    Args:
        hidden: Recovered fragments
        line_tolerance: Baseline distance in pixels treated as one line

    Returns:
        New list in reading order
    """
    lines: list[list[HiddenText]] = []
    for item in sorted(hidden, key=lambda h: (h.y, h.x)):
        if lines and abs(item.y - lines[-1][0].y) < line_tolerance:
            lines[-1].append(item)
        else:
            lines.append([item])

    ordered = []
    for line in lines:
        ordered.extend(sorted(line, key=lambda h: h.x))
    return ordered


def associate(
    regions: list[Region],
    fragments: list[TextFragment],
    transform: PageTransform,
    min_overlap: float = 0.5,
    line_tolerance: float = 5.0,
    fallback_width_ratio: float = FALLBACK_WIDTH_RATIO
) -> list[Region]:
    """
    Assign hidden text fragments to the regions covering them.

    A fragment that qualifies for more than one region goes to the region
    with the larger vertical overlap, then the larger horizontal overlap
    ratio, then the lower region index.

    Args:
        regions: Regions of one page, in raster space
        fragments: Text fragments of the same page, in native units
        transform: Native-to-raster transform for the page
        min_overlap: Share of the fragment width that must lie inside
        line_tolerance: Baseline distance in pixels treated as one line
        fallback_width_ratio: Character width / font size for fragments
            without a width

    Returns:
        New Region values, in input order, with ``hidden_text`` set
    """
    if not regions:
        return []

    if not transform.is_finite():
        logger.debug("Page transform is not finite, no text can be recovered")
        return [region.with_hidden_text([]) for region in regions]

    # Assignment bookkeeping is local to this call
    assigned: dict[int, list[HiddenText]] = {i: [] for i in range(len(regions))}
    used_indices = set()
    skipped = 0

    for fragment in fragments:
        if fragment.index in used_indices or not is_recoverable(fragment):
            continue

        box = fragment_box(fragment, transform, fallback_width_ratio)
        if box is None:
            skipped += 1
            continue

        best = None
        best_key = None
        for i, region in enumerate(regions):
            score = _match_score(box, region, min_overlap)
            if score is None:
                continue
            key = (score[0], score[1], -i)
            if best_key is None or key > best_key:
                best = i
                best_key = key

        if best is None:
            continue

        used_indices.add(fragment.index)
        assigned[best].append(_to_hidden_text(fragment, box, transform))

    if skipped:
        logger.debug(f"Skipped {skipped} fragments with non-finite geometry")

    return [
        region.with_hidden_text(sort_reading_order(assigned[i], line_tolerance))
        for i, region in enumerate(regions)
    ]
