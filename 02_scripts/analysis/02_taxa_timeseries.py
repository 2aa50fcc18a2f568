"""
Time series plots of selected taxa.

Usage:
    python 02_taxa_timeseries.py ["Acartia clausi" "Penilia avirostris" ...]

Without arguments the five most abundant taxa are plotted.
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from zoogon.analyses import records_from_tables, taxa_totals
from zoogon.config import load_config

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

config = load_config()
output_dir = Path(config.output_dir)

frames = []
for occ_file in sorted(output_dir.glob('*/occurrence.csv')):
    dataset_dir = occ_file.parent
    frames.append(records_from_tables(
        pd.read_csv(dataset_dir / 'event.csv'),
        pd.read_csv(occ_file),
        pd.read_csv(dataset_dir / 'emof.csv'),
    ))

if not frames:
    logger.warning("No occurrence tables found in %s", output_dir)
    sys.exit(0)

df = pd.concat(frames, ignore_index=True)
df = df[df['individualCount'].notna()]

taxa = sys.argv[1:] or list(
    df.groupby('scientificName')['individualCount'].sum().sort_values(ascending=False).head(5).index
)
totals = taxa_totals(df, taxa)
totals['log_abundance'] = np.log10(totals['individualCount'] + 1)

plot_dir = Path(__file__).parent / 'timeseries'
plot_dir.mkdir(exist_ok=True)

for taxon, taxon_df in totals.groupby('scientificName'):
    plt.figure(figsize=(14, 4))
    sns.lineplot(x='eventDate', y='log_abundance', data=taxon_df, marker='o', markersize=3)
    plt.ylabel('log10(ind/m3 + 1)')
    plt.xlabel('Date')
    plt.title(taxon)
    plt.tight_layout()
    plot_file = plot_dir / f"timeseries_{taxon.replace(' ', '_')}.png"
    plt.savefig(plot_file)
    plt.close()
    logger.info("Saved: %s", plot_file)
