"""
QA Workbook utilities for the zooplankton Darwin Core tables.

Creates Excel workbooks for manual verification of the assembled tables.
"""

from pathlib import Path

import pandas as pd

from zoogon.qa.utils import (
    find_duplicate_occurrences,
    find_orphan_occurrences,
    find_schema_violations,
    find_unmatched_taxa,
)


def _write_table(ws, df: pd.DataFrame, header_font, header_fill, max_width: int = 30) -> None:
    from openpyxl.utils import get_column_letter
    from openpyxl.utils.dataframe import dataframe_to_rows

    df = df.copy()
    df['QA_Status'] = ''
    df['QA_Notes'] = ''
    # openpyxl cannot write NaN
    df = df.astype(object).where(df.notna(), None)

    for i, row in enumerate(dataframe_to_rows(df, index=False, header=True), start=1):
        for j, value in enumerate(row, start=1):
            cell = ws.cell(row=i, column=j, value=value)
            if i == 1:
                cell.font = header_font
                cell.fill = header_fill

    ws.freeze_panes = 'A2'
    for col_idx, col in enumerate(df.columns, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max(len(str(col)) + 2, 12), max_width)


def _write_findings(ws, headers: list, rows: list[dict], keys: list, empty_text: str,
                    header_font, header_fill, flag_fill, ok_fill, border) -> None:
    from openpyxl.utils import get_column_letter

    for j, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=j, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.border = border

    if rows:
        for i, item in enumerate(rows, start=2):
            for j, key in enumerate(keys, start=1):
                cell = ws.cell(row=i, column=j, value=item.get(key))
                cell.border = border
            ws.cell(row=i, column=len(keys)).fill = flag_fill
    else:
        ws.cell(row=2, column=1, value=empty_text)
        ws.cell(row=2, column=1).fill = ok_fill

    for j in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(j)].width = 25
    ws.freeze_panes = 'A2'


def create_qa_workbook(filepath: Path, summary: dict, tables, matches: dict = None) -> Path:
    """
    Create a QA workbook for manual verification of one pipeline run.

    Args:
        filepath: Path where the Excel workbook will be saved
        summary: Run summary (dataset name and counts from pipeline.summarize)
        tables: DarwinCoreTables
        matches: WoRMS matches keyed by scientificName (default:
            tables.matches)

    Sheets created:
        - Summary: Counts and validation overview
        - Schema Violations: Values that don't match controlled vocabularies
        - Integrity: Orphaned records and repeated taxon/stage per event
        - Unmatched Taxa: Names without a WoRMS match
        - QA Checklist: Standard items to verify with status columns
        - Events QA / Occurrences QA: the tables with QA columns

    Returns:
        Path to saved workbook
    """
    from openpyxl import Workbook
    from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()

    violations = find_schema_violations(tables.events, tables.occurrences, tables.emof)
    orphans = find_orphan_occurrences(tables.events, tables.occurrences, tables.emof)
    duplicates = find_duplicate_occurrences(tables.occurrences)
    if matches is None:
        matches = tables.matches
    unmatched = find_unmatched_taxa(matches)

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    error_fill = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
    warn_fill = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
    ok_fill = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    # =========================================================================
    # SHEET 1: Summary
    # =========================================================================
    ws_summary = wb.active
    ws_summary.title = "Summary"

    ws_summary['A1'] = f"QA Workbook: {summary.get('dataset', 'Unknown dataset')}"
    ws_summary['A1'].font = Font(bold=True, size=14)
    ws_summary.merge_cells('A1:D1')

    count_items = [
        ('Events', summary.get('events', len(tables.events))),
        ('Occurrences', summary.get('occurrences', len(tables.occurrences))),
        ('Measurements', summary.get('measurements', len(tables.emof))),
        ('Unique taxa', summary.get('unique_taxa', '')),
        ('Matched taxa', summary.get('matched_taxa', '')),
        ('Abundance-only rows', summary.get('abundance_only_rows', '')),
        ('Index-only rows', summary.get('index_only_rows', '')),
    ]
    for i, (label, value) in enumerate(count_items, start=3):
        ws_summary[f'A{i}'] = label
        ws_summary[f'A{i}'].font = Font(bold=True)
        ws_summary[f'B{i}'] = value

    ws_summary['A12'] = "Validation"
    ws_summary['A12'].font = Font(bold=True, size=12)
    checks = [
        ('Schema Violations', len(violations), error_fill, "See 'Schema Violations' sheet"),
        ('Orphaned Records', len(orphans), error_fill, "See 'Integrity' sheet"),
        ('Repeated Taxon/Stage', len(duplicates), warn_fill, "See 'Integrity' sheet"),
        ('Unmatched Taxa', len(unmatched), warn_fill, "See 'Unmatched Taxa' sheet"),
    ]
    for i, (label, count, fill, hint) in enumerate(checks, start=13):
        ws_summary[f'A{i}'] = label
        ws_summary[f'A{i}'].font = Font(bold=True)
        ws_summary[f'B{i}'] = count
        ws_summary[f'B{i}'].fill = fill if count else ok_fill
        ws_summary[f'C{i}'] = hint if count else "OK"

    ws_summary.column_dimensions['A'].width = 25
    ws_summary.column_dimensions['B'].width = 12
    ws_summary.column_dimensions['C'].width = 35

    # =========================================================================
    # SHEET 2: Schema Violations
    # =========================================================================
    ws_violations = wb.create_sheet("Schema Violations")
    _write_findings(
        ws_violations,
        ['Table', 'Record ID', 'Field', 'Invalid Value', 'Valid Values'],
        violations,
        ['table', 'record_id', 'field', 'value', 'valid_values'],
        "No violations found",
        header_font, header_fill, error_fill, ok_fill, thin_border,
    )

    # =========================================================================
    # SHEET 3: Integrity
    # =========================================================================
    ws_integrity = wb.create_sheet("Integrity")
    integrity_rows = orphans + [
        {
            'table': 'occurrence',
            'record_id': d['occurrenceIDs'],
            'field': 'verbatimIdentification/lifeStage',
            'value': f"{d['verbatimIdentification']} / {d['lifeStage']} x{d['count']} in {d['eventID']}",
        }
        for d in duplicates
    ]
    _write_findings(
        ws_integrity,
        ['Table', 'Record ID', 'Field', 'Value'],
        integrity_rows,
        ['table', 'record_id', 'field', 'value'],
        "No integrity issues found",
        header_font, header_fill, warn_fill, ok_fill, thin_border,
    )

    # =========================================================================
    # SHEET 4: Unmatched Taxa
    # =========================================================================
    ws_unmatched = wb.create_sheet("Unmatched Taxa")
    verbatim = (
        tables.occurrences.groupby('scientificName')['verbatimIdentification']
        .agg(lambda names: '; '.join(sorted(set(names))))
        .to_dict()
        if len(tables.occurrences) > 0 else {}
    )
    _write_findings(
        ws_unmatched,
        ['scientificName', 'Verbatim Labels'],
        [{'name': n, 'verbatim': verbatim.get(n, '')} for n in unmatched],
        ['name', 'verbatim'],
        "All taxa matched" if matches else "WoRMS matching not run",
        header_font, header_fill, warn_fill, ok_fill, thin_border,
    )

    # =========================================================================
    # SHEET 5: QA Checklist
    # =========================================================================
    ws_qa = wb.create_sheet("QA Checklist")

    checklist_items = [
        ('Category', 'Check Item', 'Status', 'Verified By', 'Date', 'Notes'),
        ('Events', 'All samples of the sample index present', '', '', '', ''),
        ('Events', 'Event dates match the field log', '', '', '', ''),
        ('Events', 'Filtered volumes plausible', '', '', '', ''),
        ('Occurrences', 'Taxon names standardized correctly', '', '', '', ''),
        ('Occurrences', 'Unmatched taxa reviewed', '', '', '', ''),
        ('Occurrences', 'Life stages use known labels', '', '', '', ''),
        ('Occurrences', 'Zero abundances flagged absent', '', '', '', ''),
        ('Measurements', 'Abundance values match source matrix', '', '', '', ''),
        ('General', 'No orphaned records', '', '', '', ''),
        ('General', 'Abundance-only samples explained', '', '', '', ''),
        ('General', 'Data ready for publication', '', '', '', ''),
    ]

    for i, row in enumerate(checklist_items, start=1):
        for j, value in enumerate(row, start=1):
            cell = ws_qa.cell(row=i, column=j, value=value)
            cell.border = thin_border
            if i == 1:
                cell.font = header_font
                cell.fill = header_fill
            cell.alignment = Alignment(wrap_text=True, vertical='top')

    ws_qa.column_dimensions['A'].width = 15
    ws_qa.column_dimensions['B'].width = 45
    ws_qa.column_dimensions['C'].width = 12
    ws_qa.column_dimensions['D'].width = 15
    ws_qa.column_dimensions['E'].width = 12
    ws_qa.column_dimensions['F'].width = 40
    ws_qa.freeze_panes = 'A2'

    # =========================================================================
    # SHEETS 6-7: Table review
    # =========================================================================
    if len(tables.events) > 0:
        _write_table(wb.create_sheet("Events QA"), tables.events, header_font, header_fill)
    if len(tables.occurrences) > 0:
        _write_table(wb.create_sheet("Occurrences QA"),
                     tables.occurrences.drop(columns=['taxonomicMatch']),
                     header_font, header_fill)

    wb.save(filepath)
    return filepath
