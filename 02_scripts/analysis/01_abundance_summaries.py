"""
Abundance summaries across all processed datasets.

Reads event/occurrence/emof CSVs from every dataset folder in the output
directory and writes:
- abundance_summary.csv: mean/sd per year and taxon
- abundance_wide.csv: event x taxon matrix
- boxplots/top_taxa_boxplot.png
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from zoogon.analyses import abundance_summary, abundance_wide, records_from_tables
from zoogon.config import load_config
from zoogon.export import save_to_csv

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

TOP_N = 12

config = load_config()
output_dir = Path(config.output_dir)

frames = []
for occ_file in sorted(output_dir.glob('*/occurrence.csv')):
    dataset_dir = occ_file.parent
    records = records_from_tables(
        pd.read_csv(dataset_dir / 'event.csv'),
        pd.read_csv(occ_file),
        pd.read_csv(dataset_dir / 'emof.csv'),
    )
    records['dataset'] = dataset_dir.name
    frames.append(records)
    logger.info("%s: %d records", dataset_dir.name, len(records))

if not frames:
    logger.warning("No occurrence tables found in %s", output_dir)
    sys.exit(0)

df = pd.concat(frames, ignore_index=True)
df = df[df['individualCount'].notna()]

summary = abundance_summary(df)
save_to_csv(summary, Path(__file__).parent / 'abundance_summary.csv')
save_to_csv(abundance_wide(df), Path(__file__).parent / 'abundance_wide.csv')

# Boxplot of the most abundant taxa over all events
plot_dir = Path(__file__).parent / 'boxplots'
plot_dir.mkdir(exist_ok=True)

top_taxa = (
    summary.groupby('scientificName')['mean_abundance'].mean()
    .sort_values(ascending=False).head(TOP_N).index
)
plot_df = df[df['scientificName'].isin(top_taxa)].copy()

plt.figure(figsize=(14, 7))
ax = sns.boxplot(x='scientificName', y='individualCount', data=plot_df, order=list(top_taxa),
                 showfliers=True, fliersize=3, flierprops={'marker': 'o', 'alpha': 0.5})
plt.yscale('symlog')
plt.ylabel('Abundance (ind/m3)')
plt.xlabel('Taxon')
plt.title(f'Top {TOP_N} taxa by mean abundance')
plt.xticks(rotation=45, ha='right')
plt.tight_layout()
plot_file = plot_dir / 'top_taxa_boxplot.png'
plt.savefig(plot_file)
plt.close()
logger.info("Saved: %s", plot_file)
