"""
Run the Darwin Core pipeline for a specific dataset.

Usage:
    python run_pipeline.py <dataset_number> [--profile production] [--verbose]
    python run_pipeline.py 01
    python run_pipeline.py all
    python run_pipeline.py list
"""

import argparse
import importlib.util
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from zoogon.config import load_config

DATASETS_DIR = Path(__file__).parent / 'datasets'

logger = logging.getLogger('run_pipeline')


def list_available_datasets():
    """List all available dataset scripts."""
    return sorted(DATASETS_DIR.glob('d[0-9][0-9]_*.py'))


def _load_module(script: Path):
    module_name = f"datasets.{script.stem}"
    spec = importlib.util.spec_from_file_location(module_name, script)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def run_dataset(dataset_num: str, config) -> bool:
    """Run the pipeline for one dataset. Returns True on success."""
    scripts = list(DATASETS_DIR.glob(f'd{dataset_num}_*.py'))

    if not scripts:
        logger.error("No dataset script found for %s", dataset_num)
        for script in list_available_datasets():
            logger.info("  available: %s", script.stem)
        return False

    script = scripts[0]
    logger.info("Running: %s (profile '%s')", script.name, config.profile)

    module = _load_module(script)
    if not hasattr(module, 'run'):
        logger.error("%s has no run() function", script.name)
        return False

    try:
        module.run(config)
    except Exception:
        logger.exception("%s failed", script.stem)
        return False
    return True


def run_all(config) -> bool:
    """Run the pipeline for all datasets; keeps going after a failure."""
    scripts = list_available_datasets()
    logger.info("Running %d datasets", len(scripts))

    results = {}
    for script in scripts:
        dataset_num = script.stem[1:3]  # "01" from "d01_..."
        results[script.stem] = run_dataset(dataset_num, config)

    for name, ok in results.items():
        logger.info("%s %s", 'OK    ' if ok else 'FAILED', name)
    return all(results.values())


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Zooplankton time series to Darwin Core")
    parser.add_argument('dataset', nargs='?', help="Dataset number (e.g. 01), 'all' or 'list'")
    parser.add_argument('--profile', default='default', help="Config profile in config.yml")
    parser.add_argument('--config', default=None, help="Path to config.yml")
    parser.add_argument('--verbose', '-v', action='store_true', help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    if not args.dataset or args.dataset.lower() == 'list':
        print(__doc__)
        print("Available datasets:")
        for script in list_available_datasets():
            print(f"  {script.stem[1:3]} - {script.stem[4:]}")
        return 0

    try:
        config = load_config(args.config, profile=args.profile)
    except (FileNotFoundError, ValueError) as e:
        logger.error("Configuration error: %s", e)
        return 2

    if args.dataset.lower() == 'all':
        ok = run_all(config)
    else:
        ok = run_dataset(args.dataset.zfill(2), config)
    return 0 if ok else 1


if __name__ == '__main__':
    sys.exit(main())
