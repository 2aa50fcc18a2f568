"""
Taxon name utilities for standardizing the free-text labels of the
abundance matrices into genus/species names.
"""

import logging
import re
from typing import Callable, Iterable, Optional

import pandas as pd

logger = logging.getLogger(__name__)


# =============================================================================
# NAME PATTERNS
# =============================================================================

GENUS_PATTERN = re.compile(r'^[A-Z][a-z]+')
FAMILY_PATTERN = re.compile(r'[A-Z][a-z]*idae')
FAMILY_NI_PATTERN = re.compile(r'[A-Z][a-z]*idae\s+n\.i\.')
GROUP_DASH_PATTERN = re.compile(r'^[A-Z][a-z]+\s*-')

# Species word has at least two letters, so "Larvae n.i." is not a binomial
BINOMIAL_PATTERN = re.compile(
    r'^[A-Z][a-z]+(?:\s+\([A-Z][a-z]+\))?\s+[a-z]{2,}'
)
SUBGENUS_PATTERN = re.compile(r'\s+\([A-Z][a-z]+\)')


def _species_complex(name: str) -> str:
    # "Sardinella+Sardinops" -> "Sardinella spp"
    genus = GENUS_PATTERN.search(name)
    if genus is None:
        return name
    return f"{genus.group(0)} spp"


def _family_not_identified(name: str) -> str:
    # "Clupeidae n.i." -> "Clupegenus sp"
    family = FAMILY_PATTERN.search(name).group(0)
    return f"{re.sub(r'idae$', 'genus', family)} sp"


def _higher_group(name: str) -> str:
    # "Engraulis - group" -> "Engraulis indet"
    return f"{GENUS_PATTERN.search(name).group(0)} indet"


def _binomial(name: str) -> str:
    # "Lutjanus (Paradies) argentimaculatus (Forsskal, 1775)" -> "Lutjanus argentimaculatus"
    binomial = BINOMIAL_PATTERN.search(name).group(0)
    return SUBGENUS_PATTERN.sub('', binomial).strip()


# Ordered (rule_name, pattern, transform) - first match wins
TAXON_RULES: list[tuple[str, re.Pattern, Callable[[str], str]]] = [
    ('species_complex', re.compile(r'\+'), _species_complex),
    ('family_not_identified', FAMILY_NI_PATTERN, _family_not_identified),
    ('higher_group', GROUP_DASH_PATTERN, _higher_group),
    ('binomial', BINOMIAL_PATTERN, _binomial),
]


# =============================================================================
# FUNCTIONS
# =============================================================================


def match_taxon_rule(name: str) -> Optional[str]:
    """Return the name of the first rule matching a taxon label, or None."""
    for rule_name, pattern, _ in TAXON_RULES:
        if pattern.search(name):
            return rule_name
    return None


def normalize_taxon_name(name) -> Optional[str]:
    """
    Normalize a raw taxon label to a genus/species name.

    Rules are tried in order and the first one that matches decides:
        1. species complex with '+'        -> "<Genus> spp"
        2. family with "n.i."              -> "<Family stem>genus sp"
        3. higher group followed by a dash -> "<Group> indet"
        4. binomial, optional subgenus     -> "<Genus> <species>"
    Labels matching no rule are returned unchanged.

    Args:
        name: Raw taxon label from the abundance matrix

    Returns:
        Standardized name, or None if the label is missing
    """
    if name is None or (not isinstance(name, str) and pd.isna(name)):
        return None

    name_str = str(name)
    for _, pattern, transform in TAXON_RULES:
        if pattern.search(name_str):
            return transform(name_str)
    return name_str


def extract_genus_species(names: Iterable) -> pd.DataFrame:
    """
    Standardize a sequence of taxon labels.

    Returns:
        DataFrame with columns original_name and genus_species, one row per
        input label in input order
    """
    names = list(names)
    return pd.DataFrame({
        'original_name': names,
        'genus_species': [normalize_taxon_name(n) for n in names],
    })


def add_genus_species(df: pd.DataFrame,
                      taxon_col: str = 'taxa',
                      out_col: str = 'scientificName') -> pd.DataFrame:
    """
    Attach standardized names to a table, normalizing each distinct label once.
    """
    df = df.copy()
    distinct = df[taxon_col].dropna().unique()
    lookup = {name: normalize_taxon_name(name) for name in distinct}

    unchanged = [name for name, std in lookup.items() if std == name and match_taxon_rule(str(name)) is None]
    if unchanged:
        logger.debug("%d taxon labels matched no naming rule and were kept as written", len(unchanged))

    df[out_col] = df[taxon_col].map(lookup)
    return df
