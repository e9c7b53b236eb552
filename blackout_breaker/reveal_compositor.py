"""
Compositing of revealed pages.

Produces two kinds of page images from a buffer and its regions:
1. White-out: every region box (grown by 1 pixel) painted over
2. Revealed: white-out plus the recovered text drawn inside each box
"""

import logging
from functools import lru_cache
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .models import PixelBuffer, Region, Rectangle


logger = logging.getLogger(__name__)

ERASE_COLOR = (255, 255, 255, 255)
TEXT_COLOR = (0, 0, 0, 255)

# Pixels added on each side of a region before erasing
ERASE_MARGIN = 1


@lru_cache(maxsize=64)
def _load_font(size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=size)


def _erase_box(region: Region) -> Rectangle:
    return region.rect.expand(ERASE_MARGIN)


def _erase(canvas: np.ndarray, box: Rectangle, color: tuple) -> None:
    # cv2.rectangle end points are inclusive
    cv2.rectangle(
        canvas,
        (box.x, box.y),
        (box.x1 - 1, box.y1 - 1),
        color,
        thickness=cv2.FILLED
    )


def white_out(
    buffer: PixelBuffer,
    regions: list[Region],
    erase_color: tuple[int, int, int, int] = ERASE_COLOR
) -> PixelBuffer:
    """
    Paint over every region.

    Args:
        buffer: Original page
        regions: Regions detected on the page
        erase_color: RGBA fill colour

    Returns:
        New buffer; the original is left untouched
    """
    canvas = np.ascontiguousarray(buffer.samples.copy())
    for region in regions:
        _erase(canvas, _erase_box(region), erase_color)
    return PixelBuffer(samples=canvas, scale=buffer.scale)


def _draw_hidden_text(
    image: Image.Image,
    region: Region,
    text_color: tuple[int, int, int, int]
) -> None:
    """Draw a region's text, clipped to its erase box."""
    box = _erase_box(region)
    left = max(0, box.x)
    top = max(0, box.y)
    right = min(image.width, box.x1)
    bottom = min(image.height, box.y1)
    if right <= left or bottom <= top:
        return

    # Drawing on a crop clips every glyph to the erased area
    crop = image.crop((left, top, right, bottom))
    draw = ImageDraw.Draw(crop)
    for item in region.hidden_text:
        font = _load_font(max(1, round(item.font_size)))
        draw.text(
            (item.x - left, item.y - top),
            item.text,
            fill=text_color,
            font=font,
            anchor="ls",  # x, y is the left end of the baseline
        )
    image.paste(crop, (left, top))


def reveal(
    buffer: PixelBuffer,
    regions: list[Region],
    draw_text: bool = True,
    erase_color: tuple[int, int, int, int] = ERASE_COLOR,
    text_color: tuple[int, int, int, int] = TEXT_COLOR
) -> PixelBuffer:
    """
    Erase every region and draw its recovered text in place.

    Applying the reveal twice gives the same result as applying it once.

    Args:
        buffer: Original page
        regions: Regions with hidden text
        draw_text: Draw recovered text (False gives a plain white-out)
        erase_color: RGBA fill colour
        text_color: RGBA text colour

    Returns:
        New buffer with the regions revealed
    """
    erased = white_out(buffer, regions, erase_color)
    if not draw_text or not any(r.hidden_text for r in regions):
        return erased

    image = Image.fromarray(erased.samples.copy())
    for region in regions:
        if region.hidden_text:
            _draw_hidden_text(image, region, text_color)

    return PixelBuffer(samples=np.asarray(image, dtype=np.uint8).copy(), scale=buffer.scale)


def generate_image_filename(doc_id: str, page_num: int, kind: str) -> str:
    """
    Generate a standardized filename for a page image.

    Args:
        doc_id: Document identifier
        page_num: Page number (1-indexed)
        kind: "whiteout" or "revealed"

    Returns:
        Filename string
    """
    # Sanitize doc_id for filesystem
    safe_doc_id = "".join(c if c.isalnum() or c in "._-" else "_" for c in doc_id)

    return f"{safe_doc_id}_p{page_num}_{kind}.png"


def save_buffer(buffer: PixelBuffer, output_path: Path) -> bool:
    """
    Save a buffer to disk as PNG.

    Args:
        buffer: Page to save
        output_path: Path to save to

    Returns:
        True if successful, False otherwise
    """
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(buffer.samples).save(str(output_path), format="PNG")
        return True
    except OSError as e:
        logger.warning(f"Could not write {output_path}: {e}")
        return False
