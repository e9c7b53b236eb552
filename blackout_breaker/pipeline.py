"""
Page analysis and multiprocessing orchestration.

Runs the per-page pipeline (scan -> merge -> associate) and drives it over
documents and whole corpora, with documents processed in parallel using a
multiprocessing Pool and progress tracking.
"""

import multiprocessing
from pathlib import Path
from typing import Optional, Callable
import logging

import fitz
from tqdm import tqdm

from .models import (
    PixelBuffer, PageTransform, TextFragment, Region,
    PageResult, DocumentResult, CorpusResult, AnalysisParams,
    InvalidBufferError
)
from .block_scanner import scan
from .text_associator import associate
from .page_source import render_page, extract_fragments, page_transform
from .reveal_compositor import reveal, save_buffer, generate_image_filename


logger = logging.getLogger(__name__)


def analyze_page(
    buffer: PixelBuffer,
    fragments: list[TextFragment],
    transform: PageTransform,
    page_num: int,
    params: Optional[AnalysisParams] = None
) -> PageResult:
    """
    Detect regions on one page and recover the text hidden under them.

    Args:
        buffer: Rendered page
        fragments: Text fragments of the page, in native units
        transform: Native-to-raster transform matching the buffer
        page_num: Page number (1-indexed)
        params: Analysis parameters (defaults if None)

    Returns:
        PageResult with regions top-to-bottom, left-to-right
    """
    if params is None:
        params = AnalysisParams()

    rects = scan(
        buffer,
        black_threshold=params.black_threshold,
        grid_step=params.grid_step,
        min_width=params.min_width,
        min_height=params.min_height,
        density_threshold=params.density_threshold,
        merge_gap=params.merge_gap,
    )

    regions = [Region(page_num=page_num, rect=rect, scale=buffer.scale) for rect in rects]
    regions = associate(
        regions,
        fragments,
        transform,
        min_overlap=params.min_overlap,
        line_tolerance=params.line_tolerance,
        fallback_width_ratio=params.fallback_width_ratio,
    )

    logger.debug(
        f"Page {page_num}: {len(regions)} regions, "
        f"{sum(len(r.hidden_text) for r in regions)} hidden fragments"
    )

    return PageResult(
        page_num=page_num,
        regions=regions,
        width=buffer.width,
        height=buffer.height,
    )


def analyze_raw_page(
    data: bytes,
    width: int,
    height: int,
    scale: float,
    fragments: list[TextFragment],
    transform: PageTransform,
    page_num: int,
    params: Optional[AnalysisParams] = None
) -> PageResult:
    """
    Analyse a page given as tightly packed RGBA bytes.

    The page either yields all of its regions or, if the buffer is
    invalid, none of them with ``error`` set. Other pages are unaffected.

    Args:
        data: width * height * 4 bytes, row-major RGBA
        width: Buffer width in pixels
        height: Buffer height in pixels
        scale: Raster scale factor
        fragments: Text fragments of the page, in native units
        transform: Native-to-raster transform matching the buffer
        page_num: Page number (1-indexed)
        params: Analysis parameters (defaults if None)

    Returns:
        PageResult for the page
    """
    try:
        buffer = PixelBuffer.from_bytes(data, width, height, scale)
    except InvalidBufferError as e:
        logger.error(f"Invalid buffer on page {page_num}: {e}")
        return PageResult(page_num=page_num, error=str(e))

    return analyze_page(buffer, fragments, transform, page_num, params)


def _write_page_images(
    buffer: PixelBuffer,
    result: PageResult,
    doc_id: str,
    params: AnalysisParams,
    output_dir: Path
) -> None:
    """Write white-out and revealed images for a page with regions."""
    images_dir = output_dir / "images"

    whiteout_name = generate_image_filename(doc_id, result.page_num, "whiteout")
    if save_buffer(reveal(buffer, result.regions, draw_text=False), images_dir / whiteout_name):
        result.image_white_out = f"images/{whiteout_name}"

    if params.draw_text:
        revealed_name = generate_image_filename(doc_id, result.page_num, "revealed")
        if save_buffer(reveal(buffer, result.regions), images_dir / revealed_name):
            result.image_revealed = f"images/{revealed_name}"


def process_page(
    page: fitz.Page,
    page_num: int,
    doc_id: str,
    params: AnalysisParams,
    output_dir: Optional[Path] = None
) -> PageResult:
    """
    Process a single PDF page.

    Args:
        page: PyMuPDF page object
        page_num: Page number (1-indexed)
        doc_id: Document identifier
        params: Analysis parameters
        output_dir: Output directory for images (optional)

    Returns:
        PageResult with all detected regions
    """
    try:
        buffer = render_page(page, params.scale)
        fragments = extract_fragments(page)
        transform = page_transform(page, params.scale)

        result = analyze_page(buffer, fragments, transform, page_num, params)

        if output_dir is not None and params.write_images and result.regions:
            _write_page_images(buffer, result, doc_id, params, output_dir)

        return result

    except Exception as e:
        logger.error(f"Error processing page {page_num} of {doc_id}: {e}")
        return PageResult(page_num=page_num, error=str(e))


def process_document(
    pdf_path: Path,
    params: AnalysisParams,
    output_dir: Optional[Path] = None
) -> DocumentResult:
    """
    Process a single PDF document.

    Args:
        pdf_path: Path to the PDF file
        params: Analysis parameters
        output_dir: Output directory for images (optional)

    Returns:
        DocumentResult with all pages processed, in page order
    """
    doc_id = pdf_path.stem

    try:
        doc = fitz.open(str(pdf_path))
    except Exception as e:
        logger.error(f"Error opening document {pdf_path}: {e}")
        return DocumentResult(
            doc_id=doc_id,
            file_path=str(pdf_path),
            error=str(e)
        )

    with doc:
        total_pages = len(doc)
        pages = []
        for page_num in range(total_pages):
            result = process_page(
                doc[page_num],
                page_num + 1,  # 1-indexed
                doc_id,
                params,
                output_dir
            )
            pages.append(result)

    logger.info(
        f"{doc_id}: {sum(len(p.regions) for p in pages)} regions "
        f"on {total_pages} pages"
    )

    return DocumentResult(
        doc_id=doc_id,
        file_path=str(pdf_path),
        total_pages=total_pages,
        pages=pages
    )


def _process_document_wrapper(args: tuple) -> DocumentResult:
    """
    Wrapper for multiprocessing - unpacks arguments.
    """
    pdf_path, params, output_dir = args
    return process_document(pdf_path, params, output_dir)


def find_pdfs(input_path: Path, subset: Optional[int] = None) -> list[Path]:
    """
    List the PDFs to process.

    Args:
        input_path: A PDF file or a directory searched recursively
        subset: If set, only the first N PDFs

    Returns:
        Sorted list of PDF paths
    """
    if input_path.is_file():
        pdf_files = [input_path] if input_path.suffix.lower() == ".pdf" else []
    else:
        pdf_files = sorted(
            p for p in input_path.glob("**/*")
            if p.is_file() and p.suffix.lower() == ".pdf"
        )
    if subset is not None:
        pdf_files = pdf_files[:subset]
    return pdf_files


def process_corpus(
    input_path: Path,
    output_dir: Optional[Path],
    params: AnalysisParams,
    workers: int = 4,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    subset: Optional[int] = None
) -> CorpusResult:
    """
    Process PDFs using parallel processing.

    Args:
        input_path: A PDF file or a directory containing PDF files
        output_dir: Directory for page images (None to skip images)
        params: Analysis parameters
        workers: Number of parallel workers
        progress_callback: Optional callback for progress updates (current, total)
        subset: If set, only process the first N PDFs (for testing)

    Returns:
        CorpusResult with documents in sorted path order
    """
    pdf_files = find_pdfs(input_path, subset)
    total_files = len(pdf_files)

    if total_files == 0:
        logger.warning(f"No PDF files found in {input_path}")
        return CorpusResult()

    logger.info(f"Found {total_files} PDF files to process")

    # Prepare arguments for each document
    args_list = [(pdf, params, output_dir) for pdf in pdf_files]

    documents = []

    if workers <= 1:
        for i, args in enumerate(args_list):
            documents.append(_process_document_wrapper(args))
            if progress_callback:
                progress_callback(i + 1, total_files)
    else:
        with multiprocessing.Pool(workers) as pool:
            # imap keeps input order
            for i, result in enumerate(pool.imap(_process_document_wrapper, args_list)):
                documents.append(result)
                if progress_callback:
                    progress_callback(i + 1, total_files)

    return CorpusResult(documents=documents)


def process_corpus_with_tqdm(
    input_path: Path,
    output_dir: Optional[Path],
    params: AnalysisParams,
    workers: int = 4,
    subset: Optional[int] = None
) -> CorpusResult:
    """
    Process PDFs with a tqdm progress bar.

    Args:
        input_path: A PDF file or a directory containing PDF files
        output_dir: Directory for page images (None to skip images)
        params: Analysis parameters
        workers: Number of parallel workers
        subset: If set, only process the first N PDFs (for testing)

    Returns:
        CorpusResult with documents in sorted path order
    """
    total_files = len(find_pdfs(input_path, subset))
    with tqdm(total=total_files, desc="Processing PDFs", unit="file") as bar:
        def advance(current: int, total: int) -> None:
            bar.update(current - bar.n)

        return process_corpus(
            input_path,
            output_dir,
            params,
            workers,
            progress_callback=advance,
            subset=subset
        )


def get_processing_stats(corpus: CorpusResult) -> dict:
    """
    Get statistics about the processing run.

    Args:
        corpus: Completed corpus result

    Returns:
        Dictionary with processing statistics
    """
    successful_docs = [d for d in corpus.documents if d.error is None]
    failed_docs = [d for d in corpus.documents if d.error is not None]

    pages_with_errors = sum(
        1 for d in successful_docs
        for p in d.pages
        if p.error is not None
    )

    return {
        "total_documents": corpus.total_documents,
        "successful_documents": len(successful_docs),
        "failed_documents": len(failed_docs),
        "total_pages": corpus.total_pages,
        "pages_with_errors": pages_with_errors,
        "total_regions": corpus.total_regions,
        "recovered_fragments": sum(
            p.recovered_fragments for d in corpus.documents for p in d.pages
        ),
        "failed_doc_ids": [d.doc_id for d in failed_docs],
    }
