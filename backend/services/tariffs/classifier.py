"""
Tariff Row Classifier

Assigns each stored tariff tier to the scope it belongs to under the current
granularity flags. Rows that do not fit the flags (e.g. per-section rows
after switching to one facility-wide price) are collected separately as
"discarded": they are removed on the next save.
"""

from typing import Dict, Iterable, List, NamedTuple, Optional

from .schemas import (
    FACILITY_SCOPE_KEY,
    INCOMPATIBLE_SCOPE_KEY,
    GranularityFlags,
    TariffTierRow,
)


class ClassifiedTiers(NamedTuple):
    grouped: Dict[str, List[TariffTierRow]]
    discarded: List[TariffTierRow]


def section_scope_key(section_id: int) -> str:
    return f"section:{section_id}"


def bike_type_scope_key(section_bike_type_id: int) -> str:
    return f"bikeType:{section_bike_type_id}"


def is_row_compatible(row: TariffTierRow, flags: GranularityFlags) -> bool:
    """
    Checks whether the row's populated ids match the granularity.

    | sections uniform | bike types uniform | required                       |
    |------------------|--------------------|--------------------------------|
    | yes              | yes                | no section, no section bike type |
    | no               | yes                | section, no section bike type  |
    | yes              | no                 | section bike type              |
    | no               | no                 | section and section bike type  |
    """
    has_section = row.section_id is not None
    has_section_bike_type = row.section_bike_type_id is not None

    if flags.uniform_across_sections and flags.uniform_across_bike_types:
        return not has_section and not has_section_bike_type
    if not flags.uniform_across_sections and flags.uniform_across_bike_types:
        return has_section and not has_section_bike_type
    if flags.uniform_across_sections and not flags.uniform_across_bike_types:
        return has_section_bike_type
    return has_section and has_section_bike_type


def derive_scope_key(row: TariffTierRow, flags: GranularityFlags) -> Optional[str]:
    """
    Returns the scope key of a row, or None if the row is incompatible with the flags.
    """
    if not is_row_compatible(row, flags):
        return None

    if flags.uniform_across_sections and flags.uniform_across_bike_types:
        return FACILITY_SCOPE_KEY
    if not flags.uniform_across_sections and flags.uniform_across_bike_types:
        return section_scope_key(row.section_id)
    return bike_type_scope_key(row.section_bike_type_id)


def classify_tiers(rows: Iterable[TariffTierRow], flags: GranularityFlags) -> ClassifiedTiers:
    """
    Groups stored rows by scope key and collects the incompatible ones.

    Within each scope, rows are sorted by their stored order and renumbered
    1..N; the storage order itself is not trusted.

    Args:
        rows: all stored tiers of the facility
        flags: the granularity currently selected in the editor

    Returns:
        ClassifiedTiers(grouped, discarded)
    """
    grouped: Dict[str, List[TariffTierRow]] = {}
    discarded: List[TariffTierRow] = []

    for row in rows:
        scope_key = derive_scope_key(row, flags)
        if scope_key is None:
            discarded.append(row.model_copy(update={"scope_key": INCOMPATIBLE_SCOPE_KEY}))
            continue
        grouped.setdefault(scope_key, []).append(row.model_copy(update={"scope_key": scope_key}))

    for scope_key, scope_rows in grouped.items():
        ordered = sorted(scope_rows, key=lambda r: r.order or 0)
        grouped[scope_key] = [
            row.model_copy(update={"order": idx}) for idx, row in enumerate(ordered, start=1)
        ]

    return ClassifiedTiers(grouped=grouped, discarded=discarded)
