"""
Payload Builder

Turns the editor draft into the body of the tariff save request.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .schemas import (
    ChangeEntry,
    EditableRow,
    GranularityFlags,
    ScopeDescriptor,
    TariffSavePayload,
    TariffTierPayload,
    TariffTierRow,
)


def draft_to_tier_rows(
    editable_by_scope: Mapping[str, Sequence[EditableRow]],
    scope_meta: Mapping[str, ScopeDescriptor],
) -> Dict[str, List[TariffTierRow]]:
    """
    Strips placeholders from the editable draft and renumbers each scope 1..N.

    The section ids a row carries follow the scope kind: facility rows carry
    none, section rows a section id, bike type rows a section id and a
    section bike type id.
    """
    result: Dict[str, List[TariffTierRow]] = {}
    for scope_key, rows in editable_by_scope.items():
        scope = scope_meta.get(scope_key)
        if scope is None:
            result[scope_key] = []
            continue

        real_rows = [row for row in rows if not row.is_placeholder]
        result[scope_key] = [
            TariffTierRow(
                row_id=row.row_id,
                scope_key=scope_key,
                order=idx,
                duration_hours=row.duration_hours,
                cost=row.cost,
                section_id=(
                    row.section_id if row.section_id is not None else scope.section_id
                ) if scope.kind in ("section", "bikeType") else None,
                section_bike_type_id=(
                    row.section_bike_type_id
                    if row.section_bike_type_id is not None
                    else scope.section_bike_type_id
                ) if scope.kind == "bikeType" else None,
                bike_type_id=row.bike_type_id if row.bike_type_id is not None else scope.bike_type_id,
            )
            for idx, row in enumerate(real_rows, start=1)
        ]
    return result


def changed_flags(flags: GranularityFlags, persisted: GranularityFlags) -> Dict[str, bool]:
    """Only the flags that differ from the persisted values, keyed by field name."""
    changed = {}
    if flags.uniform_across_sections != persisted.uniform_across_sections:
        changed["uniform_across_sections"] = flags.uniform_across_sections
    if flags.uniform_across_bike_types != persisted.uniform_across_bike_types:
        changed["uniform_across_bike_types"] = flags.uniform_across_bike_types
    return changed


def build_tiers_payload(
    draft: Mapping[str, Sequence[TariffTierRow]],
    scope_order: Iterable[str] = (),
) -> Dict[str, List[TariffTierPayload]]:
    scope_keys = list(dict.fromkeys(list(scope_order) + list(draft.keys())))
    return {
        scope_key: [
            TariffTierPayload(order=idx, duration_hours=row.duration_hours, cost=row.cost)
            for idx, row in enumerate(draft.get(scope_key, []), start=1)
        ]
        for scope_key in scope_keys
    }


def build_save_payload(
    draft: Mapping[str, Sequence[TariffTierRow]],
    flags: GranularityFlags,
    persisted_flags: GranularityFlags,
    changes: Sequence[ChangeEntry],
    scope_order: Optional[Iterable[str]] = None,
) -> TariffSavePayload:
    """
    Builds the save request body.

    Args:
        draft: scope key -> draft rows without placeholders
        flags: granularity flags selected in the editor
        persisted_flags: flags of the last persisted snapshot
        changes: change log of the draft against the snapshot
        scope_order: scope keys in display order; every scope is sent so the
                     server can drop rows of scopes that became empty

    Returns:
        TariffSavePayload with flag keys only for changed flags and tiers only
        when the change log is non-empty
    """
    fields = changed_flags(flags, persisted_flags)
    if changes:
        fields["tiers"] = build_tiers_payload(draft, scope_order or ())
    return TariffSavePayload(**fields)
