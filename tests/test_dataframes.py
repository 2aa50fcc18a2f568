import json
from datetime import date

import pandas as pd
import pytest

from zoogon.dataframes import (
    assemble_darwin_core,
    clean_names,
    create_event_df,
    format_measurement_value,
)
from zoogon.reshape import pivot_abundance_long
from zoogon.samples import join_sample_index
from zoogon.schema import EMOF_COLUMNS, EVENT_COLUMNS, OCCURRENCE_COLUMNS, DataQualityError


@pytest.fixture
def joined(wide_matrix, sample_index):
    return join_sample_index(pivot_abundance_long(wide_matrix), sample_index)


@pytest.fixture
def tables(joined, station, sample_index):
    return assemble_darwin_core(joined, station, sample_index=sample_index)


def test_event_table(tables, station):
    events = tables.events
    assert list(events.columns) == EVENT_COLUMNS
    assert events['eventID'].tolist() == ['mc1', 'mc2', 'mc3', 'mc4']
    assert events['eventID'].is_unique
    assert events['eventDate'].tolist() == ['2019-01-08', '2019-01-15', '2019-01-22', '2019-01-29']
    assert events['sampleSizeValue'].tolist() == [10.5, 11.0, 9.8, 12.0]
    assert (events['sampleSizeUnit'] == 'cubic meters').all()
    assert (events['decimalLatitude'] == station.decimal_latitude).all()
    assert (events['locality'] == 'LTER-MC (Mare Chiara)').all()


def test_occurrence_ids_and_order(tables):
    occ = tables.occurrences
    assert list(occ.columns) == OCCURRENCE_COLUMNS
    assert occ['occurrenceID'].tolist() == [f"{e}-occ{i}" for i, e in enumerate(
        ['mc1'] * 3 + ['mc2'] * 3 + ['mc3'] * 3, start=1)]
    assert occ['scientificName'].tolist() == [
        'Acartia clausi', 'Clupegenus sp', 'Oithona spp',
        'Acartia clausi', 'Oithona spp', 'Larvae n.i.',
        'Clupegenus sp', 'Oithona spp', 'Larvae n.i.',
    ]
    assert occ['verbatimIdentification'].iloc[0] == 'Acartia clausi Giesbrecht, 1889'
    assert (occ['basisOfRecord'] == 'HumanObservation').all()


def test_occurrence_status_follows_abundance(tables):
    records = tables.records
    assert ((records['individualCount'] > 0) == (records['occurrenceStatus'] == 'present')).all()
    assert tables.occurrences['occurrenceStatus'].tolist() == [
        'present', 'absent', 'present',
        'present', 'present', 'absent',
        'present', 'absent', 'present',
    ]


def test_missing_values_are_not_records(tables):
    # 12 cells, 3 empty
    assert len(tables.occurrences) == 9
    mc2 = tables.records[tables.records['eventID'] == 'mc2']
    assert 'Clupeidae n.i.' not in set(mc2['verbatimIdentification'])


def test_every_occurrence_has_an_event(tables):
    assert set(tables.occurrences['eventID']) <= set(tables.events['eventID'])
    assert set(tables.emof['occurrenceID']) <= set(tables.occurrences['occurrenceID'])


def test_emof_table(tables):
    emof = tables.emof
    assert list(emof.columns) == EMOF_COLUMNS
    # Oithona rows carry no life stage
    assert len(emof) == 15
    assert emof['measurementType'].value_counts().to_dict() == {'individualCount': 9, 'lifeStage': 6}

    counts = emof[emof['measurementType'] == 'individualCount']
    assert counts['measurementValue'].tolist()[:6] == ['12.5', '0', '3', '4', '1.5', '0']
    assert (counts['measurementUnit'] == 'individuals per cubic meter').all()

    first = emof[emof['occurrenceID'] == 'mc1-occ1']
    assert first['measurementType'].tolist() == ['lifeStage', 'individualCount']
    assert first['measurementValue'].tolist() == ['adults', '12.5']
    assert first['eventDate'].tolist() == ['2019-01-08', '2019-01-08']


def test_taxonomic_matches_attached(joined, station, sample_index):
    matches = {
        'Acartia clausi': {'AphiaID': 104251, 'scientificname': 'Acartia clausi',
                           'lsid': 'urn:lsid:marinespecies.org:taxname:104251',
                           'match_type': 'exact'},
        'Oithona spp': None,
    }
    tables = assemble_darwin_core(joined, station, matches=matches, sample_index=sample_index)
    occ = tables.occurrences

    acartia = occ[occ['scientificName'] == 'Acartia clausi']
    assert (acartia['scientificNameID'] == 'urn:lsid:marinespecies.org:taxname:104251').all()
    assert json.loads(acartia['taxonomicMatch'].iloc[0])['AphiaID'] == 104251

    oithona = occ[occ['scientificName'] == 'Oithona spp']
    assert oithona['scientificNameID'].isna().all()
    assert oithona['taxonomicMatch'].isna().all()
    assert tables.matches is matches


def test_index_only_events_without_sample_index(joined, station):
    # mc4 still comes through the outer join
    tables = assemble_darwin_core(joined, station)
    assert 'mc4' in tables.events['eventID'].tolist()


def test_conflicting_event_dates_raise(station):
    joined = pd.DataFrame({
        'sample_id': ['mc1', 'mc1'],
        'date': [date(2019, 1, 8), date(2019, 1, 9)],
        'filtered_volume_m3': [10.0, 10.0],
    })
    with pytest.raises(DataQualityError):
        create_event_df(joined, station)


def test_event_without_volume_has_no_unit(station):
    joined = pd.DataFrame({'sample_id': ['mc1'], 'date': [date(2019, 1, 8)]})
    events = create_event_df(joined, station)
    assert pd.isna(events['sampleSizeValue'].iloc[0])
    assert events['sampleSizeUnit'].iloc[0] is None


def test_records_without_event_are_left_out(wide_matrix, sample_index, station):
    wide = wide_matrix.assign(**{'MC 99': [1, 1, 1, 1]})
    joined = join_sample_index(pivot_abundance_long(wide), sample_index)
    tables = assemble_darwin_core(joined, station)
    assert 'mc99' not in set(tables.occurrences['eventID'])
    assert len(tables.occurrences) == 9


def test_rerun_is_identical(joined, station, sample_index):
    first = assemble_darwin_core(joined, station, sample_index=sample_index)
    second = assemble_darwin_core(joined.copy(), station, sample_index=sample_index)
    pd.testing.assert_frame_equal(first.occurrences, second.occurrences)
    pd.testing.assert_frame_equal(first.emof, second.emof)


@pytest.mark.parametrize('value, expected', [
    (4.0, '4'),
    (1.5, '1.5'),
    (0.0, '0'),
    (' adults ', 'adults'),
    ('', None),
    (None, None),
    (float('nan'), None),
])
def test_format_measurement_value(value, expected):
    assert format_measurement_value(value) == expected


def test_clean_names():
    assert clean_names([
        'group_cruise/Station Name', 'sampleDate', '2nd count', 'Count', 'count',
    ]) == ['group_cruise_station_name', 'sample_date', 'x2nd_count', 'count', 'count_2']
