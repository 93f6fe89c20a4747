"""
Scope Descriptor Resolver

Derives the ordered list of pricing scopes a facility currently has, from the
two granularity flags and the facility topology (sections and the bike types
each section permits). Stored rows that reference a scope the topology no
longer produces still get a descriptor, so nothing is silently hidden.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from .classifier import bike_type_scope_key, derive_scope_key, section_scope_key
from .schemas import (
    BikeTypeScope,
    FacilityScope,
    GranularityFlags,
    PermittedBikeType,
    ScopeDescriptor,
    Section,
    SectionScope,
    TariffTierRow,
)

logger = logging.getLogger(__name__)

FACILITY_LABEL = "All sections & bike types"
FALLBACK_FACILITY_LABEL = "General tariffs"
UNKNOWN_SCOPE_LABEL = "Unknown scope"


def section_label(section: Section) -> str:
    return section.title or f"Section {section.section_id}"


def bike_type_label(bike_type_id: Optional[int], bike_type_names: Mapping[int, str]) -> str:
    if bike_type_id is None:
        return "Bike type"
    return bike_type_names.get(bike_type_id) or f"Bike type {bike_type_id}"


class _ScopeCollector:
    """Keeps descriptors unique by key, in encounter order."""

    def __init__(self):
        self.descriptors: List[ScopeDescriptor] = []
        self.seen_keys = set()

    def add(self, scope: ScopeDescriptor) -> None:
        if scope.key in self.seen_keys:
            return
        self.descriptors.append(scope)
        self.seen_keys.add(scope.key)


def _scopes_per_section(sections: Iterable[Section], collector: _ScopeCollector) -> None:
    for section in sections:
        label = section_label(section)
        collector.add(SectionScope(
            key=section_scope_key(section.section_id),
            label=label,
            section_label=label,
            section_id=section.section_id,
        ))


def _scopes_per_bike_type(
    sections: Iterable[Section],
    bike_type_names: Mapping[int, str],
    collector: _ScopeCollector,
) -> None:
    # First permitted occurrence of each bike type wins, across all sections
    first_by_bike_type: Dict[int, PermittedBikeType] = {}
    for section in sections:
        for permitted in section.permitted_bike_types:
            if not permitted.allowed or permitted.section_bike_type_id is None or permitted.bike_type_id is None:
                continue
            first_by_bike_type.setdefault(permitted.bike_type_id, permitted)

    for bike_type_id, permitted in first_by_bike_type.items():
        label = bike_type_label(bike_type_id, bike_type_names)
        collector.add(BikeTypeScope(
            key=bike_type_scope_key(permitted.section_bike_type_id),
            label=label,
            bike_type_label=label,
            bike_type_id=bike_type_id,
            section_bike_type_id=permitted.section_bike_type_id,
        ))


def _scopes_per_section_and_bike_type(
    sections: Iterable[Section],
    bike_type_names: Mapping[int, str],
    collector: _ScopeCollector,
) -> None:
    for section in sections:
        sec_label = section_label(section)
        for permitted in section.permitted_bike_types:
            if not permitted.allowed or permitted.section_bike_type_id is None:
                continue
            label = bike_type_label(permitted.bike_type_id, bike_type_names)
            collector.add(BikeTypeScope(
                key=bike_type_scope_key(permitted.section_bike_type_id),
                label=label,
                section_label=sec_label,
                section_id=section.section_id,
                bike_type_id=permitted.bike_type_id,
                bike_type_label=label,
                section_bike_type_id=permitted.section_bike_type_id,
            ))


def _synthesized_scope(
    row: TariffTierRow,
    scope_key: str,
    flags: GranularityFlags,
    bike_type_names: Mapping[int, str],
) -> ScopeDescriptor:
    sec_label = f"Section {row.section_id}" if row.section_id is not None else None
    bt_label = (
        bike_type_label(row.bike_type_id, bike_type_names)
        if row.bike_type_id is not None
        else None
    )
    fields = dict(
        key=scope_key,
        label=bt_label or sec_label or UNKNOWN_SCOPE_LABEL,
        section_label=sec_label,
        section_id=row.section_id,
        bike_type_id=row.bike_type_id,
        bike_type_label=bt_label,
        section_bike_type_id=row.section_bike_type_id,
    )
    if flags.uniform_across_sections and flags.uniform_across_bike_types:
        return FacilityScope(**fields)
    if flags.uniform_across_bike_types:
        return SectionScope(**fields)
    return BikeTypeScope(**fields)


def resolve_scopes(
    flags: GranularityFlags,
    sections: Iterable[Section],
    bike_type_names: Mapping[int, str],
    tiers: Iterable[TariffTierRow] = (),
) -> List[ScopeDescriptor]:
    """
    Produces the ordered, de-duplicated scope descriptors for the given flags.

    Args:
        flags: current granularity flags
        sections: facility sections with their permitted bike types
        bike_type_names: bike type id -> display name
        tiers: stored rows; compatible rows whose scope the topology does not
               produce get a synthesized descriptor appended

    Returns:
        List of scope descriptors, never empty
    """
    sections = list(sections)
    collector = _ScopeCollector()

    if flags.uniform_across_sections and flags.uniform_across_bike_types:
        collector.add(FacilityScope(label=FACILITY_LABEL))
    elif flags.uniform_across_bike_types:
        _scopes_per_section(sections, collector)
    elif flags.uniform_across_sections:
        _scopes_per_bike_type(sections, bike_type_names, collector)
    else:
        _scopes_per_section_and_bike_type(sections, bike_type_names, collector)

    for row in tiers:
        scope_key = derive_scope_key(row, flags)
        if scope_key is None or scope_key in collector.seen_keys:
            continue
        logger.debug("Synthesizing scope %s for row %s outside the facility topology", scope_key, row.row_id)
        collector.add(_synthesized_scope(row, scope_key, flags, bike_type_names))

    if not collector.descriptors:
        collector.add(FacilityScope(label=FALLBACK_FACILITY_LABEL))

    return collector.descriptors
