"""
Catalogue and summary files for a processed corpus.

Every region is listed with its document box and recovered text in
catalogue.json and catalogue.csv; summary.json holds aggregate statistics.
"""

import json
import csv
from pathlib import Path
from datetime import datetime
from typing import Any
from statistics import mean, median, stdev

from .models import CorpusResult, DocumentResult, AnalysisParams


CSV_FIELDS = [
    "doc_id", "region_index", "page_num",
    "x", "y", "width", "height",
    "pdf_x", "pdf_y", "pdf_width", "pdf_height",
    "fragment_count", "hidden_text",
]


def _document_to_dict(doc: DocumentResult) -> dict:
    return {
        "doc_id": doc.doc_id,
        "file_path": doc.file_path,
        "total_pages": doc.total_pages,
        "total_regions": doc.total_regions,
        "error": doc.error,
        "pages": [
            {
                "page_num": page.page_num,
                "width": page.width,
                "height": page.height,
                "region_count": len(page.regions),
                "image_white_out": page.image_white_out,
                "image_revealed": page.image_revealed,
                "error": page.error,
                "regions": [r.to_dict() for r in page.regions]
            }
            for page in doc.pages
        ]
    }


def write_catalogue_json(
    corpus: CorpusResult,
    params: AnalysisParams,
    output_path: Path
) -> None:
    """
    Write every document, page and region to JSON.

    Args:
        corpus: Complete corpus results
        params: Analysis parameters used
        output_path: Path to write JSON file
    """
    catalogue = {
        "extraction_timestamp": datetime.now().isoformat(),
        "parameters": params.to_dict(),
        "summary": {
            "total_documents": corpus.total_documents,
            "total_pages": corpus.total_pages,
            "total_regions": corpus.total_regions,
        },
        "documents": [_document_to_dict(doc) for doc in corpus.documents]
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(catalogue, f, indent=2, ensure_ascii=False)


def write_catalogue_csv(
    corpus: CorpusResult,
    output_path: Path
) -> None:
    """
    Write the catalogue to CSV format (flat, one row per region).

    Args:
        corpus: Complete corpus results
        output_path: Path to write CSV file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for doc in corpus.documents:
            for i, region in enumerate(doc.all_regions):
                row = {"doc_id": doc.doc_id, "region_index": i}
                row.update(region.to_csv_row())
                writer.writerow(row)


def calculate_distribution_stats(values: list[float]) -> dict[str, Any]:
    """
    Count, mean, median, spread and range of a list of values.

    Args:
        values: List of numeric values

    Returns:
        Dictionary with distribution statistics
    """
    if not values:
        return {
            "count": 0,
            "mean": 0,
            "median": 0,
            "std": 0,
            "min": 0,
            "max": 0,
        }

    return {
        "count": len(values),
        "mean": round(mean(values), 2),
        "median": round(median(values), 2),
        "std": round(stdev(values), 2) if len(values) > 1 else 0,
        "min": min(values),
        "max": max(values),
    }


def write_summary_json(
    corpus: CorpusResult,
    params: AnalysisParams,
    output_path: Path
) -> None:
    """
    Write corpus totals, recovery counts and size distributions.

    Args:
        corpus: Complete corpus results
        params: Analysis parameters used
        output_path: Path to write summary file
    """
    all_regions = corpus.all_regions

    regions_per_doc = [d.total_regions for d in corpus.documents]
    with_text = [r for r in all_regions if r.hidden_text]
    fragment_counts = [len(r.hidden_text) for r in all_regions]

    summary = {
        "extraction_timestamp": datetime.now().isoformat(),
        "parameters": params.to_dict(),
        "corpus_stats": {
            "total_documents": corpus.total_documents,
            "total_pages": corpus.total_pages,
            "total_regions": corpus.total_regions,
            "documents_with_errors": sum(1 for d in corpus.documents if d.error),
            "pages_with_errors": sum(
                1 for d in corpus.documents for p in d.pages if p.error
            ),
        },
        "regions_per_document": calculate_distribution_stats(regions_per_doc),
        "recovery_stats": {
            "regions_with_text": len(with_text),
            "recovered_fragments": sum(fragment_counts),
            "recovery_rate": round(
                len(with_text) / len(all_regions), 4
            ) if all_regions else 0,
            "fragments_per_region": calculate_distribution_stats(fragment_counts),
        },
        "size_stats": {
            "width_pixels": calculate_distribution_stats([r.rect.width for r in all_regions]),
            "height_pixels": calculate_distribution_stats([r.rect.height for r in all_regions]),
            "width_points": calculate_distribution_stats(
                [round(r.document_box[2], 2) for r in all_regions]
            ),
            "height_points": calculate_distribution_stats(
                [round(r.document_box[3], 2) for r in all_regions]
            ),
        },
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2)


def write_all_outputs(
    corpus: CorpusResult,
    params: AnalysisParams,
    output_dir: Path
) -> dict[str, Path]:
    """
    Write all output files (catalogue.json, catalogue.csv, summary.json).

    Args:
        corpus: Complete corpus results
        params: Analysis parameters used
        output_dir: Base output directory

    Returns:
        Dictionary mapping output type to file path
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {
        "catalogue_json": output_dir / "catalogue.json",
        "catalogue_csv": output_dir / "catalogue.csv",
        "summary_json": output_dir / "summary.json",
    }

    write_catalogue_json(corpus, params, paths["catalogue_json"])
    write_catalogue_csv(corpus, paths["catalogue_csv"])
    write_summary_json(corpus, params, paths["summary_json"])

    return paths
