"""
Region merger for consolidating fragmented block detections.

A single redaction often shows up as several candidates (split by
anti-aliasing, thin gaps, or multi-line bars). Candidates that touch or
sit within a small gap of each other are merged into their bounding union:
- Adjacency is tested against the accumulated union, not the constituents
- Absorption repeats until a full pass changes nothing
- Passes repeat over the produced unions until they are stable
"""

import logging

from .models import Rectangle


logger = logging.getLogger(__name__)

# Default edge separation (raster pixels) under which rectangles merge
MERGE_GAP = 10


def are_adjacent(a: Rectangle, b: Rectangle, gap: int = MERGE_GAP) -> bool:
    """
    Check whether two rectangles overlap or lie within ``gap`` of each other.

    Equivalent to expanding ``a`` by ``gap`` on every side and testing
    intersection with ``b`` (edges inclusive).

    Args:
        a: First rectangle
        b: Second rectangle
        gap: Maximum edge separation in pixels

    Returns:
        True if the rectangles are adjacent
    """
    return (
        a.x - gap <= b.x1 and
        a.x1 + gap >= b.x and
        a.y - gap <= b.y1 and
        a.y1 + gap >= b.y
    )


def union_rect(a: Rectangle, b: Rectangle) -> Rectangle:
    """Bounding union of two rectangles."""
    return a.union(b)


def _merge_pass(rects: list[Rectangle], gap: int) -> list[Rectangle]:
    """
    One greedy pass: grow a union from each unconsumed rectangle.

    Args:
        rects: Rectangles to merge
        gap: Maximum edge separation in pixels

    Returns:
        Unions in the order their first constituent appeared
    """
    merged = []
    used = set()

    for i, rect in enumerate(rects):
        if i in used:
            continue

        current = rect
        used.add(i)

        # Rescan until nothing else can be absorbed into the growing union
        did_merge = True
        while did_merge:
            did_merge = False
            for j, other in enumerate(rects):
                if j in used:
                    continue
                if are_adjacent(current, other, gap):
                    current = union_rect(current, other)
                    used.add(j)
                    did_merge = True

        merged.append(current)

    return merged


def merge_regions(
    candidates: list[Rectangle],
    gap: int = MERGE_GAP
) -> list[Rectangle]:
    """
    Merge adjacent rectangles into their bounding unions.

    A union emitted early in a pass can become adjacent to a union that
    grew later in the same pass, so passes repeat until no pass merges
    anything. The result is then independent of input order and merging
    it again is a no-op.

    Args:
        candidates: Candidate rectangles
        gap: Maximum edge separation in pixels

    Returns:
        Merged rectangles, sorted top-to-bottom then left-to-right
    """
    if len(candidates) < 2:
        return list(candidates)

    rects = list(candidates)
    passes = 0
    while True:
        passes += 1
        merged = _merge_pass(rects, gap)
        if len(merged) == len(rects):
            break
        rects = merged

    if len(rects) != len(candidates):
        logger.debug(
            f"Merged {len(candidates)} candidates into {len(rects)} regions "
            f"in {passes} passes"
        )

    rects.sort(key=lambda r: (r.y, r.x, r.height, r.width))
    return rects
