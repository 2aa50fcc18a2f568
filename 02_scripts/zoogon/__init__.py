"""
ZooGoN - Zooplankton time series (LTER-MC, Gulf of Naples) to Darwin Core.

Modules:
    - taxonomy: Taxon name standardization (genus/species labels)
    - conversions: Excel serial dates, sample dates and abundance values
    - reshape: Wide abundance matrices to long records
    - samples: Sample identifier cleaning and sample-index join
    - dataframes: Event, Occurrence and eMoF table creation
    - schema: Column definitions, controlled vocabularies and validation
    - worms: Taxonomic matching against WoRMS
    - kobo: Paginated KoboToolbox survey download
    - flatten: Nested survey submissions to flat rows
    - config: Profile-based configuration loading
    - excel_utils: Spreadsheet reading and review tables
    - export: CSV / Parquet / Excel export and run reports
    - pipeline: End-to-end orchestration and run summaries
    - analyses: Abundance summaries
    - qa: QA checks and review workbook
"""

__version__ = '0.1.0'
