"""
Diff / Change-Log Engine

Compares the last persisted tariff snapshot with the operator's draft and
lists what a save would create, update and delete. The list drives both the
save button (nothing to save without entries or a flag change) and the change
summary shown to the operator.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .schemas import (
    INCOMPATIBLE_SCOPE_KEY,
    ChangeEntry,
    FacilityScope,
    ScopeDescriptor,
    TariffTierRow,
)

INCOMPATIBLE_SCOPE = FacilityScope(
    key=INCOMPATIBLE_SCOPE_KEY,
    label="Not allowed (removed)",
)


def _row_changed(before: TariffTierRow, after: TariffTierRow) -> bool:
    return (
        before.order != after.order
        or before.duration_hours != after.duration_hours
        or before.cost != after.cost
    )


def _scope_changes(
    scope: Optional[ScopeDescriptor],
    original_rows: Sequence[TariffTierRow],
    draft_rows: Sequence[TariffTierRow],
) -> List[ChangeEntry]:
    entries: List[ChangeEntry] = []
    draft_by_id: Dict[int, TariffTierRow] = {
        row.row_id: row for row in draft_rows if row.row_id is not None
    }
    original_ids = {row.row_id for row in original_rows if row.row_id is not None}
    matched_ids = set()

    for before in original_rows:
        if before.row_id is None:
            continue
        after = draft_by_id.get(before.row_id)
        if after is None:
            entries.append(ChangeEntry(scope=scope, type="deleted", before=before))
            continue
        matched_ids.add(before.row_id)
        if _row_changed(before, after):
            entries.append(ChangeEntry(scope=scope, type="updated", before=before, after=after))

    for after in draft_rows:
        if after.row_id is not None and (after.row_id in matched_ids or after.row_id in original_ids):
            continue
        entries.append(ChangeEntry(scope=scope, type="created", after=after))

    return entries


def compute_change_log(
    original: Mapping[str, Sequence[TariffTierRow]],
    draft: Mapping[str, Sequence[TariffTierRow]],
    scope_meta: Mapping[str, ScopeDescriptor],
) -> List[ChangeEntry]:
    """
    Diffs the grouped snapshot against the draft, scope by scope.

    Rows are matched by row_id. A matched row whose order, duration or cost
    differs is "updated", an unmatched original row is "deleted" and a draft
    row without a counterpart is "created".

    Args:
        original: scope key -> persisted rows (ladder order)
        draft: scope key -> draft rows without placeholders, renumbered
        scope_meta: scope key -> descriptor, attached to each entry

    Returns:
        flat list of change entries
    """
    scope_keys = list(original.keys())
    scope_keys += [key for key in draft.keys() if key not in original]

    entries: List[ChangeEntry] = []
    for scope_key in scope_keys:
        entries.extend(_scope_changes(
            scope_meta.get(scope_key),
            original.get(scope_key, []),
            draft.get(scope_key, []),
        ))
    return entries


def discarded_change_entries(discarded: Iterable[TariffTierRow]) -> List[ChangeEntry]:
    """Every discarded row is deleted on save, whatever else the diff says."""
    return [
        ChangeEntry(scope=INCOMPATIBLE_SCOPE, type="deleted", before=row)
        for row in discarded
    ]


def build_change_log(
    original: Mapping[str, Sequence[TariffTierRow]],
    draft: Mapping[str, Sequence[TariffTierRow]],
    scope_meta: Mapping[str, ScopeDescriptor],
    discarded: Iterable[TariffTierRow] = (),
) -> List[ChangeEntry]:
    return compute_change_log(original, draft, scope_meta) + discarded_change_entries(discarded)


def summarize_changes(entries: Iterable[ChangeEntry]) -> Dict[str, int]:
    """Counts entries per change type, e.g. {"created": 1, "updated": 0, "deleted": 3}."""
    summary = {"created": 0, "updated": 0, "deleted": 0}
    for entry in entries:
        summary[entry.type] += 1
    return summary
