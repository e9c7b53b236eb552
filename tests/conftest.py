"""Shared fixtures: synthetic page buffers and redacted PDFs."""

from pathlib import Path

import fitz
import numpy as np
import pytest

from blackout_breaker.models import PixelBuffer


def _make_buffer(
    width: int,
    height: int,
    blocks: list[tuple[int, int, int, int]] = (),
    scale: float = 1.0,
) -> PixelBuffer:
    """White RGBA buffer with solid black blocks given as (x0, y0, x1, y1), x1/y1 exclusive."""
    samples = np.full((height, width, 4), 255, dtype=np.uint8)
    for x0, y0, x1, y1 in blocks:
        samples[y0:y1, x0:x1, :3] = 0
    return PixelBuffer(samples=samples, scale=scale)


@pytest.fixture
def make_buffer():
    return _make_buffer


def _write_redacted_pdf(path: Path, secret: str = "TopSecret") -> Path:
    """One-page PDF with visible text and a black box drawn over ``secret``."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((50, 50), "Hello World", fontsize=12)
    page.insert_text((100, 100), secret, fontsize=12)
    shape = page.new_shape()
    shape.draw_rect(fitz.Rect(95, 88, 200, 104))
    shape.finish(fill=(0, 0, 0), color=(0, 0, 0))
    shape.commit()
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def redacted_pdf(tmp_path) -> Path:
    return _write_redacted_pdf(tmp_path / "letter.pdf")


@pytest.fixture
def write_redacted_pdf():
    return _write_redacted_pdf
