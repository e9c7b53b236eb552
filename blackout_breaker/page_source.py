"""
PyMuPDF page source.

Turns a PDF page into the inputs of the analysis pipeline:
- an RGBA pixel buffer rendered at a fixed scale
- the page's positioned text spans as fragments
- the transform from PDF points to raster pixels
"""

import cv2
import fitz
import numpy as np

from .models import PageTransform, PixelBuffer, TextFragment


def render_page(page: fitz.Page, scale: float = 1.5) -> PixelBuffer:
    """
    Render a PyMuPDF page to an RGBA pixel buffer.

    Args:
        page: PyMuPDF page object
        scale: Raster pixels per PDF point

    Returns:
        PixelBuffer at the given scale
    """
    pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)

    img = np.frombuffer(pix.samples, dtype=np.uint8).reshape(
        pix.height, pix.width, pix.n
    )

    # Normalise whatever the pixmap carries to tightly packed RGBA
    if pix.n == 1:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    elif pix.n == 3:
        img = cv2.cvtColor(img, cv2.COLOR_RGB2RGBA)
    else:
        img = img.copy()

    return PixelBuffer(samples=img, scale=scale)


def extract_fragments(page: fitz.Page) -> list[TextFragment]:
    """
    Extract every text span of a page as a fragment.

    Spans keep their extraction position as their index, including
    whitespace-only spans, so indices stay stable.

    Args:
        page: PyMuPDF page object

    Returns:
        List of TextFragment objects in extraction order, in PDF points
    """
    fragments = []

    text_dict = page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)

    for block in text_dict.get("blocks", []):
        if block.get("type") != 0:  # Text block
            continue

        for line in block.get("lines", []):
            for span in line.get("spans", []):
                bbox = span.get("bbox")
                origin = span.get("origin")
                if bbox is None or origin is None:
                    continue

                fragments.append(TextFragment(
                    text=span.get("text", ""),
                    x=origin[0],
                    y=origin[1],
                    font_size=span.get("size", 12.0),
                    index=len(fragments),
                    width=bbox[2] - bbox[0],
                    font_name=span.get("font", ""),
                ))

    return fragments


def page_transform(page: fitz.Page, scale: float = 1.5) -> PageTransform:
    """
    Transform from the page's text coordinates to its rendered pixels.

    PyMuPDF reports text in unrotated page space with a top-left origin,
    while the pixmap follows the page's /Rotate, so only unrotated pages
    map with a plain scale.

    Args:
        page: PyMuPDF page object
        scale: Raster pixels per PDF point

    Returns:
        PageTransform for the page

    Raises:
        ValueError: If the page is rotated
    """
    if page.rotation:
        raise ValueError(f"Unsupported page rotation: {page.rotation} degrees")
    return PageTransform.scaled(scale)
