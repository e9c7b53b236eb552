"""
Data models for redaction detection and hidden text recovery.

Defines dataclasses for pixel buffers, rectangles, text fragments, detected
regions and the per-page / per-document / per-corpus results.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np


class InvalidBufferError(ValueError):
    """Raised when a pixel buffer has zero size, a wrong sample count or a non-uint8 dtype."""


@dataclass(frozen=True)
class Rectangle:
    """
    Integer bounding box in raster-pixel space.

    ``width`` and ``height`` follow the scanner's convention of
    ``max - min`` over the inclusive pixel extent.
    """
    x: int
    y: int
    width: int
    height: int

    @property
    def x1(self) -> int:
        return self.x + self.width

    @property
    def y1(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def expand(self, margin: int) -> "Rectangle":
        """Grow the rectangle by ``margin`` pixels on every side."""
        return Rectangle(
            self.x - margin,
            self.y - margin,
            self.width + 2 * margin,
            self.height + 2 * margin,
        )

    def union(self, other: "Rectangle") -> "Rectangle":
        """Smallest rectangle containing both rectangles."""
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        x1 = max(self.x1, other.x1)
        y1 = max(self.y1, other.y1)
        return Rectangle(x0, y0, x1 - x0, y1 - y0)

    def to_document(self, scale: float) -> tuple[float, float, float, float]:
        """
        Convert to document space.

        Args:
            scale: Raster scale factor the rectangle was detected at

        Returns:
            (x, y, width, height) in native page units
        """
        return (
            self.x / scale,
            self.y / scale,
            self.width / scale,
            self.height / scale,
        )


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    Read-only RGBA samples for one rendered page.

    ``samples`` is a ``uint8`` array shaped (height, width, 4).
    ``scale`` is the raster scale factor relative to native page units.
    """
    samples: np.ndarray
    scale: float = 1.0

    def __post_init__(self):
        samples = self.samples
        if samples.ndim != 3 or samples.shape[2] != 4:
            raise InvalidBufferError(
                f"Expected (height, width, 4) samples, got shape {samples.shape}"
            )
        if samples.shape[0] == 0 or samples.shape[1] == 0:
            raise InvalidBufferError(
                f"Buffer has zero size: {samples.shape[1]}x{samples.shape[0]}"
            )
        if samples.dtype != np.uint8:
            raise InvalidBufferError(f"Expected uint8 samples, got {samples.dtype}")

        # Read-only view; the caller's array keeps its own flags
        view = samples.view()
        view.flags.writeable = False
        object.__setattr__(self, "samples", view)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        width: int,
        height: int,
        scale: float = 1.0
    ) -> "PixelBuffer":
        """
        Build a buffer from tightly packed RGBA bytes.

        Args:
            data: width * height * 4 bytes, row-major RGBA
            width: Buffer width in pixels
            height: Buffer height in pixels
            scale: Raster scale factor

        Returns:
            PixelBuffer viewing a copy of the data

        Raises:
            InvalidBufferError: If a dimension is zero or the data length
                does not match the dimensions
        """
        if width <= 0 or height <= 0:
            raise InvalidBufferError(f"Buffer has zero size: {width}x{height}")
        expected = width * height * 4
        if len(data) != expected:
            raise InvalidBufferError(
                f"Sample data has {len(data)} bytes, expected {expected} "
                f"for {width}x{height} RGBA"
            )
        samples = np.frombuffer(data, dtype=np.uint8).reshape(height, width, 4).copy()
        return cls(samples=samples, scale=scale)

    @property
    def width(self) -> int:
        return self.samples.shape[1]

    @property
    def height(self) -> int:
        return self.samples.shape[0]

    def black_mask(self, threshold: int = 30) -> np.ndarray:
        """Boolean mask of pixels whose R, G and B are all below ``threshold``."""
        return np.all(self.samples[:, :, :3] < threshold, axis=2)


@dataclass(frozen=True)
class PageTransform:
    """
    Affine map from native text-layout coordinates to raster pixels.

    Scale and translate only; rotation and skew are not supported.
    """
    scale_x: float
    scale_y: float
    translate_x: float = 0.0
    translate_y: float = 0.0

    @classmethod
    def scaled(cls, scale: float) -> "PageTransform":
        """Transform for layouts with a top-left origin (e.g. PyMuPDF)."""
        return cls(scale, scale)

    @classmethod
    def flipped(cls, scale: float, page_height: float) -> "PageTransform":
        """Transform for layouts with a bottom-left origin (raw PDF space)."""
        return cls(scale, -scale, 0.0, page_height * scale)

    def apply(self, x: float, y: float) -> tuple[float, float]:
        return (
            self.scale_x * x + self.translate_x,
            self.scale_y * y + self.translate_y,
        )

    def scale_length(self, length: float) -> float:
        """Scale a vertical length (font size) into raster pixels."""
        return length * abs(self.scale_y)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (
            self.scale_x, self.scale_y, self.translate_x, self.translate_y
        ))


@dataclass(frozen=True)
class TextFragment:
    """
    One positioned run of text from the page's layout extraction.

    Coordinates are in native page units; (x, y) is the baseline origin.
    """
    text: str
    x: float
    y: float
    font_size: float
    index: int  # position in the page's fragment list
    width: Optional[float] = None
    font_name: str = ""


@dataclass(frozen=True)
class HiddenText:
    """
    Display data of a fragment recovered from under a region.

    Coordinates are in raster space; (x, y) is the baseline origin.
    """
    text: str
    x: float
    y: float
    width: float
    height: float
    font_size: float
    index: int
    font_name: str = ""

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "x": round(self.x, 2),
            "y": round(self.y, 2),
            "width": round(self.width, 2),
            "height": round(self.height, 2),
            "font_size": round(self.font_size, 2),
            "index": self.index,
            "font_name": self.font_name,
        }


@dataclass(frozen=True)
class Region:
    """
    A detected redaction block.
    """
    page_num: int  # 1-indexed
    rect: Rectangle
    scale: float = 1.0
    hidden_text: tuple[HiddenText, ...] = ()

    @property
    def document_box(self) -> tuple[float, float, float, float]:
        return self.rect.to_document(self.scale)

    @property
    def text(self) -> str:
        """Recovered text in reading order, joined with spaces."""
        return " ".join(h.text.strip() for h in self.hidden_text)

    def with_hidden_text(self, hidden_text: list[HiddenText]) -> "Region":
        return Region(
            page_num=self.page_num,
            rect=self.rect,
            scale=self.scale,
            hidden_text=tuple(hidden_text),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        doc_x, doc_y, doc_w, doc_h = self.document_box
        return {
            "page_num": self.page_num,
            "x": self.rect.x,
            "y": self.rect.y,
            "width": self.rect.width,
            "height": self.rect.height,
            "pdf_x": round(doc_x, 2),
            "pdf_y": round(doc_y, 2),
            "pdf_width": round(doc_w, 2),
            "pdf_height": round(doc_h, 2),
            "hidden_text": [h.to_dict() for h in self.hidden_text],
        }

    def to_csv_row(self) -> dict:
        """Convert to flat dictionary for CSV output."""
        doc_x, doc_y, doc_w, doc_h = self.document_box
        return {
            "page_num": self.page_num,
            "x": self.rect.x,
            "y": self.rect.y,
            "width": self.rect.width,
            "height": self.rect.height,
            "pdf_x": round(doc_x, 2),
            "pdf_y": round(doc_y, 2),
            "pdf_width": round(doc_w, 2),
            "pdf_height": round(doc_h, 2),
            "fragment_count": len(self.hidden_text),
            "hidden_text": self.text,
        }


@dataclass
class PageResult:
    """Results from analysing a single page."""
    page_num: int
    regions: list[Region] = field(default_factory=list)
    width: int = 0
    height: int = 0
    image_white_out: str = ""
    image_revealed: str = ""
    error: Optional[str] = None

    @property
    def recovered_fragments(self) -> int:
        return sum(len(r.hidden_text) for r in self.regions)


@dataclass
class DocumentResult:
    """Results from processing a single document."""
    doc_id: str
    file_path: str
    total_pages: int = 0
    pages: list[PageResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def total_regions(self) -> int:
        return sum(len(p.regions) for p in self.pages)

    @property
    def all_regions(self) -> list[Region]:
        regions = []
        for page in self.pages:
            regions.extend(page.regions)
        return regions


@dataclass
class CorpusResult:
    """Results from processing an entire corpus of documents."""
    documents: list[DocumentResult] = field(default_factory=list)

    @property
    def total_documents(self) -> int:
        return len(self.documents)

    @property
    def total_pages(self) -> int:
        return sum(d.total_pages for d in self.documents)

    @property
    def total_regions(self) -> int:
        return sum(d.total_regions for d in self.documents)

    @property
    def all_regions(self) -> list[Region]:
        regions = []
        for doc in self.documents:
            regions.extend(doc.all_regions)
        return regions


@dataclass
class AnalysisParams:
    """Parameters for redaction detection and text recovery."""
    scale: float = 1.5  # Raster scale factor relative to PDF points
    black_threshold: int = 30  # R, G and B must all be below this (0-255)
    grid_step: int = 5  # Seed grid spacing in pixels
    min_width: int = 20  # Minimum region width in pixels
    min_height: int = 8  # Minimum region height in pixels
    density_threshold: float = 0.85  # Black sample ratio a region must exceed
    merge_gap: int = 10  # Edge separation in pixels for merging regions
    min_overlap: float = 0.5  # Horizontal share of a fragment inside a region
    line_tolerance: float = 5.0  # Baseline distance in pixels for one line
    fallback_width_ratio: float = 0.6  # Char width / font size when width unknown
    write_images: bool = True  # Write white-out and revealed PNGs
    draw_text: bool = True  # Draw recovered text in revealed PNGs

    def to_dict(self) -> dict:
        return {
            "scale": self.scale,
            "black_threshold": self.black_threshold,
            "grid_step": self.grid_step,
            "min_width": self.min_width,
            "min_height": self.min_height,
            "density_threshold": self.density_threshold,
            "merge_gap": self.merge_gap,
            "min_overlap": self.min_overlap,
            "line_tolerance": self.line_tolerance,
            "fallback_width_ratio": self.fallback_width_ratio,
        }
