"""
Blackout Breaker CLI

Finds black redaction boxes in PDF files and recovers the text that is
still present underneath them in the text layer.

Usage:
    blackout-breaker --input ./pdfs/ --output ./output/
    python extract.py --input letter.pdf --output ./output/
"""

import sys
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

import click

from .models import AnalysisParams
from .pipeline import find_pdfs, process_corpus_with_tqdm, get_processing_stats
from .output_writer import write_all_outputs


logger = logging.getLogger(__name__)


def validate_input_path(ctx, param, value):
    """Validate that the input is an existing PDF file or directory."""
    path = Path(value)
    if not path.exists():
        raise click.BadParameter(f"Input path does not exist: {value}")
    if path.is_file() and path.suffix.lower() != ".pdf":
        raise click.BadParameter(f"Input file is not a PDF: {value}")
    return path


def _echo_header(
    input_path: Path,
    output_dir: Path,
    params: AnalysisParams,
    workers: int,
    subset: Optional[int]
) -> None:
    click.echo("=" * 60)
    click.echo("Blackout Breaker")
    click.echo("=" * 60)
    click.echo()

    if not params.write_images:
        images = "off"
    elif params.draw_text:
        images = "white-out and revealed"
    else:
        images = "white-out only"

    rows = [
        ("Input", input_path),
        ("Output", output_dir),
        ("Scale", f"{params.scale} px/pt"),
        ("Black below", params.black_threshold),
        ("Min size", f"{params.min_width}x{params.min_height}px"),
        ("Density", f"> {params.density_threshold}"),
        ("Merge gap", f"{params.merge_gap}px"),
        ("Min overlap", params.min_overlap),
        ("Workers", workers),
        ("Images", images),
    ]
    if subset:
        rows.append(("Subset", f"first {subset} PDFs"))

    for label, value in rows:
        click.echo(f"  {label + ':':<14}{value}")
    click.echo()


def _echo_results(stats: dict, verbose: bool) -> None:
    click.echo(f"  Documents:  {stats['successful_documents']}/{stats['total_documents']}")
    click.echo(f"  Pages:      {stats['total_pages']}")
    click.echo(f"  Redactions: {stats['total_regions']}")
    click.echo(f"  Recovered:  {stats['recovered_fragments']} text fragments")

    if stats['failed_documents'] or stats['pages_with_errors']:
        click.echo(click.style(
            f"  Errors: {stats['failed_documents']} documents, "
            f"{stats['pages_with_errors']} pages",
            fg="yellow"
        ))
        if verbose:
            for doc_id in stats['failed_doc_ids']:
                click.echo(f"    - {doc_id}")
    click.echo()


@click.command()
@click.option(
    "--input", "-i",
    "input_path",
    required=True,
    callback=validate_input_path,
    help="PDF file, or directory searched recursively for PDF files"
)
@click.option(
    "--output", "-o",
    "output_dir",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory for results (catalogue.json, catalogue.csv, summary.json, images/)"
)
@click.option(
    "--scale",
    default=1.5,
    type=click.FloatRange(0.5, 3.0),
    help="Raster pixels per PDF point when rendering pages. Default: 1.5"
)
@click.option(
    "--threshold", "-t",
    default=30,
    type=click.IntRange(1, 256),
    help="Pixels with R, G and B all below this are black (0-255). Default: 30"
)
@click.option(
    "--grid-step",
    default=5,
    type=click.IntRange(min=1),
    help="Seed grid spacing in pixels. Default: 5"
)
@click.option(
    "--min-width",
    default=20,
    type=int,
    help="Minimum redaction width in pixels. Default: 20"
)
@click.option(
    "--min-height",
    default=8,
    type=int,
    help="Minimum redaction height in pixels. Default: 8"
)
@click.option(
    "--density",
    default=0.85,
    type=click.FloatRange(0.0, 1.0),
    help="Share of black samples a redaction must exceed. Default: 0.85"
)
@click.option(
    "--merge-gap",
    default=10,
    type=click.IntRange(min=0),
    help="Redactions closer than this many pixels are merged. Default: 10"
)
@click.option(
    "--min-overlap",
    default=0.5,
    type=click.FloatRange(0.0, 1.0),
    help="Share of a text fragment's width that must lie inside a redaction. Default: 0.5"
)
@click.option(
    "--workers", "-w",
    default=4,
    type=int,
    help="Number of parallel worker processes. Default: 4"
)
@click.option(
    "--subset", "-s",
    default=None,
    type=int,
    help="Process only the first N PDFs (for testing)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output"
)
@click.option(
    "--no-images",
    is_flag=True,
    help="Skip writing page images (faster processing)"
)
@click.option(
    "--no-text",
    is_flag=True,
    help="Only write white-out images, without drawing the recovered text"
)
def main(
    input_path: Path,
    output_dir: Path,
    scale: float,
    threshold: int,
    grid_step: int,
    min_width: int,
    min_height: int,
    density: float,
    merge_gap: int,
    min_overlap: float,
    workers: int,
    subset: Optional[int],
    verbose: bool,
    no_images: bool,
    no_text: bool,
):
    """
    Recover text hidden under black redaction boxes in PDF files.

    Outputs:

    \b
    - catalogue.json: Every region with its recovered text
    - catalogue.csv: Flat CSV format, one row per region
    - summary.json: Aggregate statistics
    - images/: White-out and revealed page images (unless --no-images)
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    params = AnalysisParams(
        scale=scale,
        black_threshold=threshold,
        grid_step=grid_step,
        min_width=min_width,
        min_height=min_height,
        density_threshold=density,
        merge_gap=merge_gap,
        min_overlap=min_overlap,
        write_images=not no_images,
        draw_text=not no_text,
    )

    _echo_header(input_path, output_dir, params, workers, subset)

    pdf_count = len(find_pdfs(input_path, subset))
    if pdf_count == 0:
        click.echo(click.style(f"Error: no PDF files under {input_path}", fg="red"))
        sys.exit(1)

    output_dir.mkdir(parents=True, exist_ok=True)
    click.echo(f"Scanning {pdf_count} PDF file(s)")
    click.echo()

    started = datetime.now()
    try:
        corpus = process_corpus_with_tqdm(
            input_path,
            output_dir if params.write_images else None,
            params,
            workers,
            subset=subset
        )
    except KeyboardInterrupt:
        click.echo()
        click.echo(click.style("Interrupted, no output written", fg="yellow"))
        sys.exit(130)
    except Exception as e:
        click.echo(click.style(f"Processing failed: {e}", fg="red"))
        if verbose:
            logger.exception("Processing failed")
        sys.exit(1)

    click.echo()
    click.echo(f"Finished in {datetime.now() - started}")
    click.echo()

    _echo_results(get_processing_stats(corpus), verbose)

    try:
        paths = write_all_outputs(corpus, params, output_dir)
    except OSError as e:
        click.echo(click.style(f"Could not write outputs: {e}", fg="red"))
        if verbose:
            logger.exception("Writing outputs failed")
        sys.exit(1)

    click.echo("Wrote:")
    for path in paths.values():
        click.echo(f"  {path}")
    images_dir = output_dir / "images"
    if params.write_images and images_dir.exists():
        click.echo(f"  {images_dir}/ ({len(list(images_dir.glob('*.png')))} images)")

    click.echo()
    click.echo(click.style("Done!", fg="green"))

