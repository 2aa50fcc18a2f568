"""
Excel utilities for reading abundance matrices and sample index sheets.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)


def read_excel_file(filepath: str | Path,
                    sheet_name: str | int = 0,
                    header_row: Optional[int] = 0,
                    skip_rows: List[int] = None) -> pd.DataFrame:
    """
    Read an Excel file with common options.

    Args:
        filepath: Path to Excel file
        sheet_name: Sheet name or index (0-based)
        header_row: Row number to use as column headers (0-based), None for no header
        skip_rows: List of row indices to skip

    Returns:
        DataFrame with the data

    Raises:
        FileNotFoundError: If the file does not exist
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Excel file not found: {filepath}")

    return pd.read_excel(
        filepath,
        sheet_name=sheet_name,
        header=header_row,
        skiprows=skip_rows
    )


def read_abundance_matrix(filepath: str | Path,
                          sheet_name: str | int = 0,
                          taxon_col: str = 'TAXA',
                          stage_col: str = 'stage',
                          drop_columns: Optional[List] = None) -> pd.DataFrame:
    """
    Read a wide abundance matrix (taxa as rows, samples as columns).

    Identifying columns are renamed to 'taxa' and 'stage'; rows without a
    taxon label and completely empty columns are dropped.

    Args:
        filepath: Path to Excel file
        sheet_name: Sheet with the matrix
        taxon_col: Header of the taxon column
        stage_col: Header of the life stage column
        drop_columns: Column headers or 0-based positions to drop
            (e.g. station metadata or notes columns)

    Returns:
        DataFrame with taxa, stage and one column per sample
    """
    df = read_excel_file(filepath, sheet_name=sheet_name)

    if drop_columns:
        positions = [c for c in drop_columns if isinstance(c, int)]
        names = [c for c in drop_columns if not isinstance(c, int)]
        to_drop = [df.columns[i] for i in positions if i < len(df.columns)]
        to_drop += [c for c in names if c in df.columns]
        df = df.drop(columns=to_drop)

    for col in (taxon_col, stage_col):
        if col not in df.columns:
            raise ValueError(f"Column '{col}' not found in {filepath}. Columns: {list(df.columns)[:20]}")

    df = df.rename(columns={taxon_col: 'taxa', stage_col: 'stage'})
    df = df.dropna(axis=1, how='all')
    if 'stage' not in df.columns:
        df['stage'] = None
    df = df[df['taxa'].notna()].reset_index(drop=True)

    logger.info("Read matrix %s: %d taxa rows x %d sample columns",
                Path(filepath).name, len(df), len(df.columns) - 2)
    return df


def read_sample_index_sheet(filepath: str | Path,
                            sheet_name: str | int = 0) -> pd.DataFrame:
    """Read a sample id / date (/ volume) lookup sheet; headers are stripped."""
    df = read_excel_file(filepath, sheet_name=sheet_name)
    df.columns = [str(c).strip() for c in df.columns]
    df = df.dropna(how='all')
    logger.info("Read sample index %s: %d rows", Path(filepath).name, len(df))
    return df


def read_base_matrix(filepath: str | Path,
                     sheet_name: str | int = 0,
                     id_row: int = 1,
                     date_row: int = 3,
                     volume_row: int = 9,
                     first_taxon_row: int = 11,
                     taxon_col: int = 1,
                     stage_col: int = 2,
                     first_sample_col: int = 3,
                     last_sample_col: Optional[int] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Read a "Matrice di base" workbook.

    In this layout the sample header is spread over several rows above the
    taxa: sample ids, sampling dates and filtered volumes, followed by one
    row per taxon x stage. Row and column numbers are 1-based, as shown in
    Excel.

    Returns:
        (wide_df, sample_index_df): the matrix with taxa, stage and one
        column per sample id, and the lookup table with id, date and
        filtered_volume_m3 columns
    """
    raw = read_excel_file(filepath, sheet_name=sheet_name, header_row=None)

    last = last_sample_col or raw.shape[1]
    sample_positions = [
        c for c in range(first_sample_col - 1, last)
        if pd.notna(raw.iat[id_row - 1, c])
    ]
    if not sample_positions:
        raise ValueError(f"No sample ids found in row {id_row} of {filepath}")

    ids = [raw.iat[id_row - 1, c] for c in sample_positions]
    sample_index = pd.DataFrame({
        'id': ids,
        'date': [raw.iat[date_row - 1, c] for c in sample_positions],
        'filtered_volume_m3': pd.to_numeric(
            pd.Series([raw.iat[volume_row - 1, c] for c in sample_positions]), errors='coerce'
        ),
    })

    body = raw.iloc[first_taxon_row - 1:, [taxon_col - 1, stage_col - 1] + sample_positions].copy()
    body.columns = ['taxa', 'stage'] + ids
    wide = body[body['taxa'].notna()].reset_index(drop=True)

    logger.info("Read base matrix %s: %d samples, %d taxa rows",
                Path(filepath).name, len(sample_positions), len(wide))
    return wide, sample_index


# =============================================================================
# REVIEW TABLES
# =============================================================================

def create_wide_table(records: pd.DataFrame) -> pd.DataFrame:
    """
    Create a wide format table from occurrence records.

    Transforms records from long format (one row per occurrence) to wide
    format (taxa as rows, events as columns) for easier review and QA.

    Args:
        records: Occurrence records with eventID, eventDate, scientificName,
            verbatimIdentification, lifeStage and individualCount

    Returns:
        Wide-format DataFrame with:
            - scientificName, verbatimIdentification, lifeStage
            - One column per event (e.g. "mc1314 (2019-01-08)")

    Example:
        >>> wide_df = create_wide_table(tables.records)
        >>> save_wide_table_xlsx(wide_df, Path('abundance_wide.xlsx'))
    """
    def format_value(val):
        if pd.isna(val):
            return ''
        if val == int(val):
            return str(int(val))
        elif val < 0.01:
            return f"{val:.4f}"
        elif val < 1:
            return f"{val:.3f}"
        return f"{val:.2f}".rstrip('0').rstrip('.')

    index_cols = ['scientificName', 'verbatimIdentification', 'lifeStage']
    if records.empty:
        return pd.DataFrame(columns=index_cols)

    records = records.copy()
    records['formatted'] = records['individualCount'].map(format_value)
    records['lifeStage'] = records['lifeStage'].fillna('')
    records['event'] = [
        f"{e} ({pd.Timestamp(d).date().isoformat()})" if pd.notna(d) else str(e)
        for e, d in zip(records['eventID'], records['eventDate'])
    ]

    wide_df = records.pivot_table(
        index=index_cols,
        columns='event',
        values='formatted',
        aggfunc='first'
    ).reset_index()
    wide_df.columns.name = None

    event_cols = sorted(c for c in wide_df.columns if c not in index_cols)
    return wide_df[index_cols + event_cols].fillna('')


def save_wide_table_xlsx(wide_df: pd.DataFrame, filepath: Path) -> Path:
    """
    Save wide table as formatted Excel table for review.

    Creates an Excel table with:
    - Excel Table formatting with filters
    - Alternating row colors (blue theme)
    - Auto-adjusted column widths
    - Frozen header row and taxon column
    """
    from openpyxl import Workbook
    from openpyxl.worksheet.table import Table, TableStyleInfo
    from openpyxl.utils.dataframe import dataframe_to_rows
    from openpyxl.utils import get_column_letter

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = "Abundance"

    for r_idx, row in enumerate(dataframe_to_rows(wide_df, index=False, header=True), 1):
        for c_idx, value in enumerate(row, 1):
            ws.cell(row=r_idx, column=c_idx, value=value)

    max_row = len(wide_df) + 1
    max_col = len(wide_df.columns)
    if len(wide_df) > 0:
        table = Table(displayName="AbundanceTable", ref=f"A1:{get_column_letter(max_col)}{max_row}")
        table.tableStyleInfo = TableStyleInfo(
            name="TableStyleMedium2",
            showFirstColumn=False,
            showLastColumn=False,
            showRowStripes=True,
            showColumnStripes=False
        )
        ws.add_table(table)

    for col_idx, col in enumerate(wide_df.columns, 1):
        max_width = len(str(col))
        for row_idx in range(2, max_row + 1):
            cell_value = ws.cell(row=row_idx, column=col_idx).value
            if cell_value:
                max_width = max(max_width, len(str(cell_value)))
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_width + 2, 40)

    ws.freeze_panes = "B2"

    wb.save(filepath)
    logger.info("Saved wide table: %s", filepath)
    return filepath
