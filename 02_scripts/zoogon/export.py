"""
Export utilities for saving the Darwin Core tables and run reports.
"""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from zoogon.config import OUTPUT_MODES

logger = logging.getLogger(__name__)

# Table name -> attribute of DarwinCoreTables
DARWIN_CORE_FILES = {
    'event': 'events',
    'occurrence': 'occurrences',
    'emof': 'emof',
}


def save_to_csv(df: pd.DataFrame,
                filepath: str | Path,
                encoding: str = 'utf-8') -> Path:
    """
    Save DataFrame to CSV without index and with '\\n' line endings.

    The same DataFrame always produces the same bytes.

    Args:
        df: DataFrame to save
        filepath: Output path
        encoding: File encoding (use 'utf-8-sig' for files opened in Excel)

    Returns:
        Path to saved file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    df.to_csv(filepath, index=False, encoding=encoding, lineterminator='\n')
    logger.info("Saved: %s (%d rows)", filepath, len(df))

    return filepath


def save_to_parquet(df: pd.DataFrame, filepath: str | Path) -> Path:
    """Save DataFrame to Parquet (pyarrow engine, no index)."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # Mixed object columns (dates, None) are stored as strings
    out = df.copy()
    for col in out.columns:
        if out[col].dtype == object:
            out[col] = out[col].map(lambda v: None if v is None or (not isinstance(v, str) and pd.isna(v)) else str(v))

    out.to_parquet(filepath, engine='pyarrow', index=False)
    logger.info("Saved: %s (%d rows)", filepath, len(df))

    return filepath


def write_darwin_core(tables, output_dir: str | Path, mode: str = 'csv') -> List[Path]:
    """
    Write event, occurrence and emof tables to output_dir.

    Args:
        tables: DarwinCoreTables
        output_dir: Directory for the three files
        mode: 'csv' or 'parquet'

    Returns:
        Paths of the written files

    Raises:
        ValueError: If mode is unsupported (nothing is written)
    """
    if mode not in OUTPUT_MODES:
        raise ValueError(f"Unsupported output mode '{mode}'. Must be one of: {OUTPUT_MODES}")

    output_dir = Path(output_dir)
    written = []
    for name, attr in DARWIN_CORE_FILES.items():
        df = getattr(tables, attr)
        if mode == 'csv':
            written.append(save_to_csv(df, output_dir / f"{name}.csv"))
        else:
            written.append(save_to_parquet(df, output_dir / f"{name}.parquet"))
    return written


def generate_run_report(dataset: str,
                        summary: Dict[str, Any],
                        output_dir: str | Path) -> Path:
    """
    Generate a summary report of one pipeline run.

    Args:
        dataset: Dataset name
        summary: Dict with 'outcome', optional 'error', and the counts from
            pipeline.summarize()
        output_dir: Directory for output

    Returns:
        Path to report file
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    succeeded = summary.get('outcome') == 'success'
    status = "✓" if succeeded else "✗"

    report_lines = [
        f"# Run Report: {dataset}",
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
        "",
        "## Outcome",
        "",
        f"- {status} {summary.get('outcome', 'unknown')}",
    ]
    if summary.get('error'):
        report_lines.append(f"  - Error: {summary['error']}")
    for path in summary.get('outputs', []):
        report_lines.append(f"  - Output: {path}")

    report_lines.extend(["", "## Summary", ""])
    for key in ('events', 'occurrences', 'measurements', 'unique_taxa',
                'matched_taxa', 'unmatched_taxa', 'abundance_only_rows', 'index_only_rows',
                'submissions', 'taxon_records'):
        if key in summary:
            report_lines.append(f"- {key.replace('_', ' ').capitalize()}: {summary[key]}")

    report_path = output_dir / f"{dataset}_run_report.md"
    report_path.write_text('\n'.join(report_lines) + '\n', encoding='utf-8')

    logger.info("Report saved: %s", report_path)
    return report_path
