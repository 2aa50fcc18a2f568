"""
QA (Quality Assurance) utilities for the zooplankton Darwin Core tables.

This module provides tools for validating and reviewing the assembled tables.
"""

from zoogon.qa.utils import (
    find_schema_violations,
    find_duplicate_occurrences,
    find_orphan_occurrences,
    find_unmatched_taxa,
)
from zoogon.qa.workbook import create_qa_workbook

__all__ = [
    'find_schema_violations',
    'find_duplicate_occurrences',
    'find_orphan_occurrences',
    'find_unmatched_taxa',
    'create_qa_workbook',
]
