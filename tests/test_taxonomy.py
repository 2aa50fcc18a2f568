import pandas as pd
import pytest

from zoogon.taxonomy import (
    TAXON_RULES,
    add_genus_species,
    extract_genus_species,
    match_taxon_rule,
    normalize_taxon_name,
)


@pytest.mark.parametrize('raw, expected', [
    ('Clupeidae n.i.', 'Clupegenus sp'),
    ('Engraulis - group', 'Engraulis indet'),
    ('Lutjanus (Paradies) argentimaculatus (Forsskål, 1775)', 'Lutjanus argentimaculatus'),
    ('Chiridius poppei Giesbrecht, 1893', 'Chiridius poppei'),
    ('Larvae n.i.', 'Larvae n.i.'),
    ('Acartia clausi', 'Acartia clausi'),
    ('Copepoda', 'Copepoda'),
    ('Oithona sp.', 'Oithona sp'),
    ('Oncaea spp.', 'Oncaea spp'),
    ('Acartia clausi.', 'Acartia clausi'),
    ('Corycaeus spp. juv', 'Corycaeus spp'),
])
def test_normalize_examples(raw, expected):
    assert normalize_taxon_name(raw) == expected


@pytest.mark.parametrize('raw', [
    'Sardinella+Sardinops',
    'Oithona + Oncaea spp.',
    'Paracalanus+Clausocalanus juveniles',
])
def test_species_complex_gives_leading_genus_spp(raw):
    genus = raw.split('+')[0].strip().split()[0]
    assert normalize_taxon_name(raw) == f"{genus} spp"


def test_species_complex_wins_over_later_rules():
    # Also looks like a binomial; the '+' rule comes first
    assert match_taxon_rule('Acartia clausi+discaudata') == 'species_complex'


def test_null_names():
    assert normalize_taxon_name(None) is None
    assert normalize_taxon_name(float('nan')) is None


def test_rules_are_ordered():
    assert [name for name, _, _ in TAXON_RULES] == [
        'species_complex', 'family_not_identified', 'higher_group', 'binomial',
    ]


def test_rules_are_case_sensitive():
    assert normalize_taxon_name('clupeidae n.i.') == 'clupeidae n.i.'


def test_extract_genus_species_keeps_input_order():
    result = extract_genus_species(['Engraulis - group', None, 'Clupeidae n.i.'])
    assert list(result.columns) == ['original_name', 'genus_species']
    assert result['genus_species'].tolist()[0] == 'Engraulis indet'
    assert result['genus_species'].tolist()[1] is None
    assert result['genus_species'].tolist()[2] == 'Clupegenus sp'


def test_add_genus_species_maps_every_row():
    df = pd.DataFrame({'taxa': ['Clupeidae n.i.', 'Clupeidae n.i.', None]})
    out = add_genus_species(df)
    assert out['scientificName'].tolist()[:2] == ['Clupegenus sp', 'Clupegenus sp']
    assert pd.isna(out['scientificName'].iloc[2])
    assert 'scientificName' not in df.columns
