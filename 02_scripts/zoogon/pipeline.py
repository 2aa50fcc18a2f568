"""
Pipeline orchestration: wide abundance matrix + sample index -> Darwin Core.

    normalize names -> pivot long -> join sample index -> assemble tables
    -> (optional) WoRMS matching, once per distinct scientificName
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

import pandas as pd

from zoogon.config import OUTPUT_MODES
from zoogon.dataframes import DarwinCoreTables, assemble_darwin_core, prepare_occurrence_records
from zoogon.excel_utils import create_wide_table, save_wide_table_xlsx
from zoogon.export import generate_run_report, write_darwin_core
from zoogon.qa.workbook import create_qa_workbook
from zoogon.reshape import drop_duplicate_records, pivot_abundance_long
from zoogon.samples import join_sample_index
from zoogon.worms import WormsMatcher

logger = logging.getLogger(__name__)

SUMMARY_KEYS = [
    'events',
    'occurrences',
    'measurements',
    'unique_taxa',
    'matched_taxa',
    'unmatched_taxa',
    'abundance_only_rows',
    'index_only_rows',
]


def summarize(tables: DarwinCoreTables,
              joined: Optional[pd.DataFrame] = None,
              matches: Optional[dict] = None) -> dict:
    """Batch-level counts of one run."""
    names = set(tables.occurrences['scientificName'].dropna())
    matched = {n for n in names if matches and matches.get(n)}
    summary = {
        'events': len(tables.events),
        'occurrences': len(tables.occurrences),
        'measurements': len(tables.emof),
        'unique_taxa': len(names),
        'matched_taxa': len(matched),
        'unmatched_taxa': len(names - matched),
    }
    if joined is not None and '_merge_status' in joined.columns:
        status = joined['_merge_status'].value_counts()
        summary['abundance_only_rows'] = int(status.get('abundance_only', 0))
        summary['index_only_rows'] = int(status.get('index_only', 0))
    return summary


def log_summary(summary: dict) -> None:
    logger.info("Outcome: %s%s", summary.get('outcome', 'unknown'),
                f" ({summary['error']})" if summary.get('error') else '')
    for key in SUMMARY_KEYS:
        if key in summary:
            logger.info("  %s: %s", key, summary[key])


def run_pipeline(wide_df: pd.DataFrame,
                 sample_index: pd.DataFrame,
                 config,
                 header_kind: str = 'sample_id',
                 join_on: str = 'sample_id',
                 matcher: Optional[WormsMatcher] = None,
                 id_columns: Sequence[str] = ('taxa', 'stage')) -> Tuple[DarwinCoreTables, dict]:
    """
    Run the full transformation in memory.

    Args:
        wide_df: Wide abundance matrix (id_columns + one column per sample)
        sample_index: Output of build_sample_index
        config: PipelineConfig (station metadata and WoRMS settings)
        header_kind: 'sample_id' or 'date', what the sample column headers hold
        join_on: 'sample_id' or 'date', the key used to join the sample index
        matcher: WormsMatcher to use; if None, one is created when
            config.worms.enabled is set

    Returns:
        (DarwinCoreTables, summary dict)
    """
    long_df = pivot_abundance_long(wide_df, id_columns=id_columns, header_kind=header_kind)
    long_df = drop_duplicate_records(long_df)
    joined = join_sample_index(long_df, sample_index, on=join_on)

    if matcher is None and config.worms.enabled:
        matcher = WormsMatcher.from_config(config.worms)

    records = prepare_occurrence_records(joined)

    matches = None
    if matcher is not None:
        names = records['scientificName'].dropna().unique()
        matches = matcher.match_names(sorted(n for n in names if n))

    tables = assemble_darwin_core(joined, config.station, matches=matches, records=records)
    summary = summarize(tables, joined, matches)
    return tables, summary


def process_dataset(name: str,
                    loader: Callable[[], Tuple[pd.DataFrame, pd.DataFrame]],
                    config,
                    header_kind: str = 'sample_id',
                    join_on: str = 'sample_id',
                    matcher: Optional[WormsMatcher] = None,
                    output_dir=None) -> Tuple[DarwinCoreTables, dict]:
    """
    Load, transform and write one dataset.

    The output mode is checked before anything is read or written. The
    outcome and the summary counts are logged and written to a run report
    whether the run succeeds or not; failures are re-raised.

    Args:
        name: Dataset name, used for the output folder and report
        loader: Callable returning (wide_df, sample_index)
        config: PipelineConfig
        output_dir: Overrides config.output_dir / name

    Returns:
        (DarwinCoreTables, summary dict)
    """
    output_dir = Path(output_dir) if output_dir else Path(config.output_dir) / name
    summary = {'dataset': name, 'outcome': 'failed'}

    try:
        if config.output.mode not in OUTPUT_MODES:
            raise ValueError(
                f"Unsupported output mode '{config.output.mode}'. Must be one of: {OUTPUT_MODES}"
            )

        wide_df, sample_index = loader()
        tables, counts = run_pipeline(
            wide_df, sample_index, config,
            header_kind=header_kind, join_on=join_on, matcher=matcher,
        )
        summary.update(counts)

        written = write_darwin_core(tables, output_dir, mode=config.output.mode)
        if config.output.qa_workbook:
            written.append(create_qa_workbook(output_dir / f"{name}_qa.xlsx", summary, tables))
            written.append(save_wide_table_xlsx(create_wide_table(tables.records),
                                                output_dir / f"{name}_abundance_wide.xlsx"))
        summary['outputs'] = [str(p) for p in written]
        summary['outcome'] = 'success'
        return tables, summary

    except Exception as e:
        summary['error'] = f"{type(e).__name__}: {e}"
        logger.error("Processing %s failed: %s", name, summary['error'])
        raise

    finally:
        log_summary(summary)
        generate_run_report(name, summary, output_dir)
