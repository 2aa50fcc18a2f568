"""
Dataset 03 - MC surveys (KoboToolbox)

Downloads the survey submissions, checks submission ids are unique,
flattens the nested records and reshapes the taxa repeat group to one row
per taxon record. Writes:
- surveys_raw.<csv|parquet>: one row per submission
- surveys_tidy.<csv|parquet>: one row per taxon record
"""

import logging
import sys
from pathlib import Path

# Add parent to path for zoogon imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from zoogon.export import generate_run_report, save_to_csv, save_to_parquet
from zoogon.flatten import preprocess_surveys
from zoogon.kobo import ingest_surveys

logger = logging.getLogger(__name__)

# ============================================================
# DATASET CONFIGURATION
# ============================================================

DATASET_CODE = 'd03_mc_surveys'
DATASET_NAME = 'MC surveys'

# ============================================================


def run(config, session=None):
    """Download and preprocess the MC survey submissions."""
    output_dir = Path(config.output_dir) / DATASET_CODE
    save = save_to_parquet if config.output.mode == 'parquet' else save_to_csv
    ext = 'parquet' if config.output.mode == 'parquet' else 'csv'

    summary = {'dataset': DATASET_CODE, 'outcome': 'failed'}
    try:
        raw = ingest_surveys(config, session=session)
        tidy = preprocess_surveys(raw)

        summary['submissions'] = len(raw)
        summary['taxon_records'] = len(tidy)
        summary['outputs'] = [
            str(save(raw, output_dir / f"surveys_raw.{ext}")),
            str(save(tidy, output_dir / f"surveys_tidy.{ext}")),
        ]
        summary['outcome'] = 'success'
        return tidy

    except Exception as e:
        summary['error'] = f"{type(e).__name__}: {e}"
        logger.error("Processing %s failed: %s", DATASET_CODE, summary['error'])
        raise

    finally:
        logger.info("Outcome: %s (%s submissions, %s taxon records)", summary['outcome'],
                    summary.get('submissions', 0), summary.get('taxon_records', 0))
        generate_run_report(DATASET_CODE, summary, output_dir)


if __name__ == '__main__':
    from zoogon.config import load_config

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    run(load_config())
