from backend.services.tariffs.classifier import classify_tiers
from backend.services.tariffs.schemas import (
    BikeTypeScope,
    FacilityScope,
    GranularityFlags,
    PermittedBikeType,
    Section,
    SectionScope,
    TariffTierRow,
)
from backend.services.tariffs.scopes import resolve_scopes

FACILITY = GranularityFlags(uniform_across_sections=True, uniform_across_bike_types=True)
PER_SECTION = GranularityFlags(uniform_across_sections=False, uniform_across_bike_types=True)
PER_BIKE_TYPE = GranularityFlags(uniform_across_sections=True, uniform_across_bike_types=False)
PER_PAIR = GranularityFlags(uniform_across_sections=False, uniform_across_bike_types=False)

BIKE_TYPE_NAMES = {1: "Bicycle", 2: "E-bike"}


def _sections():
    """Two sections, both permitting bike types 1 and 2."""
    return [
        Section(section_id=10, title="Ground floor", permitted_bike_types=[
            PermittedBikeType(section_bike_type_id=101, bike_type_id=1),
            PermittedBikeType(section_bike_type_id=102, bike_type_id=2),
        ]),
        Section(section_id=20, title=None, permitted_bike_types=[
            PermittedBikeType(section_bike_type_id=201, bike_type_id=1),
            PermittedBikeType(section_bike_type_id=202, bike_type_id=2),
        ]),
    ]


def test_uniform_facility_has_one_scope():
    scopes = resolve_scopes(FACILITY, _sections(), BIKE_TYPE_NAMES)

    assert len(scopes) == 1
    assert isinstance(scopes[0], FacilityScope)
    assert scopes[0].key == "facility"
    assert scopes[0].label == "All sections & bike types"


def test_per_section_has_one_scope_per_section():
    scopes = resolve_scopes(PER_SECTION, _sections(), BIKE_TYPE_NAMES)

    assert [s.key for s in scopes] == ["section:10", "section:20"]
    assert all(isinstance(s, SectionScope) for s in scopes)
    assert [s.label for s in scopes] == ["Ground floor", "Section 20"]
    assert scopes[0].section_id == 10


def test_per_bike_type_has_one_scope_per_distinct_bike_type():
    scopes = resolve_scopes(PER_BIKE_TYPE, _sections(), BIKE_TYPE_NAMES)

    # first occurrence wins, regardless of how many sections permit the type
    assert [s.key for s in scopes] == ["bikeType:101", "bikeType:102"]
    assert [s.label for s in scopes] == ["Bicycle", "E-bike"]
    assert all(isinstance(s, BikeTypeScope) for s in scopes)
    assert scopes[0].section_id is None


def test_per_pair_has_one_scope_per_section_and_bike_type():
    scopes = resolve_scopes(PER_PAIR, _sections(), BIKE_TYPE_NAMES)

    assert [s.key for s in scopes] == ["bikeType:101", "bikeType:102", "bikeType:201", "bikeType:202"]
    assert scopes[2].section_id == 20
    assert scopes[2].section_label == "Section 20"
    assert scopes[2].bike_type_label == "Bicycle"


def test_disallowed_and_incomplete_bike_types_are_skipped():
    sections = [
        Section(section_id=1, permitted_bike_types=[
            PermittedBikeType(section_bike_type_id=11, bike_type_id=1, allowed=False),
            PermittedBikeType(section_bike_type_id=12, bike_type_id=None),
            PermittedBikeType(section_bike_type_id=None, bike_type_id=3),
            PermittedBikeType(section_bike_type_id=14, bike_type_id=4),
        ]),
    ]

    per_bike_type = resolve_scopes(PER_BIKE_TYPE, sections, {})
    per_pair = resolve_scopes(PER_PAIR, sections, {})

    assert [s.key for s in per_bike_type] == ["bikeType:14"]
    assert per_bike_type[0].label == "Bike type 4"
    # per pair only requires a section bike type id
    assert [s.key for s in per_pair] == ["bikeType:12", "bikeType:14"]


def test_empty_topology_falls_back_to_general_facility_scope():
    scopes = resolve_scopes(PER_SECTION, [], BIKE_TYPE_NAMES)

    assert len(scopes) == 1
    assert scopes[0].key == "facility"
    assert scopes[0].label == "General tariffs"


def test_stored_rows_outside_topology_get_a_synthesized_scope():
    tiers = [
        TariffTierRow(row_id=1, order=1, duration_hours=1, cost=1, section_id=10),
        TariffTierRow(row_id=2, order=1, duration_hours=1, cost=1, section_id=99),
    ]

    scopes = resolve_scopes(PER_SECTION, _sections(), BIKE_TYPE_NAMES, tiers)

    assert [s.key for s in scopes] == ["section:10", "section:20", "section:99"]
    assert isinstance(scopes[-1], SectionScope)
    assert scopes[-1].label == "Section 99"


def test_synthesized_scope_prevents_fallback():
    tiers = [TariffTierRow(row_id=1, order=1, duration_hours=1, cost=1, section_id=5, section_bike_type_id=55, bike_type_id=2)]

    scopes = resolve_scopes(PER_PAIR, [], BIKE_TYPE_NAMES, tiers)

    assert [s.key for s in scopes] == ["bikeType:55"]
    assert scopes[0].label == "E-bike"


def test_incompatible_rows_do_not_create_scopes():
    tiers = [TariffTierRow(row_id=1, order=1, duration_hours=1, cost=1, section_id=10)]

    scopes = resolve_scopes(FACILITY, _sections(), BIKE_TYPE_NAMES, tiers)

    assert [s.key for s in scopes] == ["facility"]


def test_every_compatible_row_is_covered():
    tiers = [
        TariffTierRow(row_id=i, order=1, duration_hours=1, cost=1, section_id=s, section_bike_type_id=sbt)
        for i, (s, sbt) in enumerate([(10, 101), (20, 202), (30, 303), (None, 404)], start=1)
    ]

    for flags in (FACILITY, PER_SECTION, PER_BIKE_TYPE, PER_PAIR):
        keys = {s.key for s in resolve_scopes(flags, _sections(), BIKE_TYPE_NAMES, tiers)}
        assert set(classify_tiers(tiers, flags).grouped) <= keys
