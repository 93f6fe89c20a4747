"""
Editable Scope-Row Builder

Turns the classified rows of one scope into the list the operator edits:
the real rows in ladder order followed by exactly one blank placeholder row.
Typing into the placeholder turns it into a real row and a new placeholder
appears; clearing both fields of a real row removes it.

All functions are pure: they return new row lists and never mutate their
input. Focus handling is left to the caller through FocusRequest.
"""

import math
import time
from typing import Callable, List, NamedTuple, Optional, Sequence, Union

from .schemas import EditableRow, FocusRequest, ScopeDescriptor, TariffTierRow
from .validation import TariffValidationError

# Placeholder rows always sort last
PLACEHOLDER_ORDER_TOKEN = 2 ** 53 - 1

EDITABLE_FIELDS = ("duration_hours", "cost")

KeyAllocator = Callable[[], str]


class RowKeyAllocator:
    """Hands out session-unique row key suffixes ("1", "2", ...)."""

    def __init__(self, start: int = 0):
        self._counter = start

    def __call__(self) -> str:
        self._counter += 1
        return str(self._counter)


class RowEdit(NamedTuple):
    rows: List[EditableRow]
    focus: Optional[FocusRequest]


def sanitize_number_input(value: Union[str, int, float, None]) -> Optional[float]:
    """
    Parses operator input into a number.

    Blank, unparsable or non-finite input (nan, inf) becomes None, a decimal
    comma is accepted and negative numbers are clamped to 0.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        raw = value
    else:
        raw = str(value).strip().replace(",", ".", 1)
        if not raw:
            return None

    try:
        parsed = float(raw)
    except (ValueError, OverflowError):
        return None

    if not math.isfinite(parsed):
        return None
    return 0.0 if parsed < 0 else parsed


def create_placeholder_row(scope: ScopeDescriptor, next_order: int, allocate_key: KeyAllocator) -> EditableRow:
    return EditableRow(
        key=f"placeholder-{scope.key}-{allocate_key()}",
        scope_key=scope.key,
        section_id=scope.section_id,
        bike_type_id=scope.bike_type_id,
        section_bike_type_id=scope.section_bike_type_id,
        order=next_order,
        duration_hours=None,
        cost=None,
        is_placeholder=True,
        order_token=PLACEHOLDER_ORDER_TOKEN,
    )


def _first_not_none(*values):
    for value in values:
        if value is not None:
            return value
    return None


def build_editable_rows(
    scope: ScopeDescriptor,
    rows: Sequence[TariffTierRow],
    allocate_key: KeyAllocator,
) -> List[EditableRow]:
    """
    Builds the editable list for one scope from its classified rows.

    Args:
        scope: the scope the rows belong to
        rows: classified rows, already in ladder order
        allocate_key: source of unique key suffixes

    Returns:
        the rows as non-placeholder EditableRows plus one trailing placeholder
    """
    editable: List[EditableRow] = []
    for idx, row in enumerate(rows, start=1):
        order = row.order if row.order is not None else idx
        key = (
            f"existing-{row.row_id}"
            if row.row_id is not None
            else f"row-{scope.key}-{allocate_key()}"
        )
        editable.append(EditableRow(
            key=key,
            scope_key=scope.key,
            row_id=row.row_id,
            section_id=_first_not_none(row.section_id, scope.section_id),
            bike_type_id=_first_not_none(row.bike_type_id, scope.bike_type_id),
            section_bike_type_id=_first_not_none(row.section_bike_type_id, scope.section_bike_type_id),
            order=order,
            duration_hours=row.duration_hours,
            cost=row.cost,
            is_placeholder=False,
            is_new=False,
            order_token=order,
        ))

    editable.append(create_placeholder_row(scope, len(editable) + 1, allocate_key))
    return editable


def _is_cleared(row: EditableRow) -> bool:
    return row.duration_hours is None and row.cost is None


def normalize_scope_rows(
    scope: ScopeDescriptor,
    rows: Sequence[EditableRow],
    allocate_key: KeyAllocator,
) -> List[EditableRow]:
    """
    Restores the editable-list invariants after an edit.

    - real rows with both fields empty are dropped
    - real rows are ordered by order_token and renumbered 1..N
    - exactly one placeholder follows, with order N+1; an existing
      placeholder keeps its key

    Running this twice yields the same list.
    """
    actual = [row for row in rows if not row.is_placeholder and not _is_cleared(row)]
    actual.sort(key=lambda row: row.order_token)

    normalized = [
        row.model_copy(update={
            "order": idx,
            "section_id": _first_not_none(row.section_id, scope.section_id),
            "bike_type_id": _first_not_none(row.bike_type_id, scope.bike_type_id),
            "section_bike_type_id": _first_not_none(row.section_bike_type_id, scope.section_bike_type_id),
        })
        for idx, row in enumerate(actual, start=1)
    ]

    placeholder = next((row for row in rows if row.is_placeholder), None)
    if placeholder is None:
        placeholder = create_placeholder_row(scope, len(normalized) + 1, allocate_key)

    normalized.append(placeholder.model_copy(update={
        "scope_key": scope.key,
        "order": len(normalized) + 1,
        "duration_hours": None,
        "cost": None,
        "order_token": PLACEHOLDER_ORDER_TOKEN,
        "section_id": scope.section_id,
        "bike_type_id": scope.bike_type_id,
        "section_bike_type_id": scope.section_bike_type_id,
    }))
    return normalized


def _next_order_token(rows: Sequence[EditableRow], now_ms: Optional[int]) -> int:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    tokens = [row.order_token for row in rows if not row.is_placeholder]
    # New rows must sort after every existing row, even with a coarse clock
    return max([now_ms] + [token + 1 for token in tokens])


def apply_field_edit(
    scope: ScopeDescriptor,
    rows: Sequence[EditableRow],
    row_key: str,
    field: str,
    raw_value: Union[str, int, float, None],
    allocate_key: KeyAllocator,
    now_ms: Optional[int] = None,
) -> RowEdit:
    """
    Applies one field edit to a scope's editable rows and re-normalizes.

    Args:
        scope: scope being edited
        rows: current editable rows of the scope
        row_key: key of the edited row
        field: "duration_hours" or "cost"
        raw_value: operator input, parsed with sanitize_number_input
        allocate_key: source of unique key suffixes
        now_ms: edit timestamp in milliseconds (defaults to the clock)

    Returns:
        RowEdit(rows, focus) - focus names the row the cursor belongs in,
        or None if the edited row was removed

    Raises:
        TariffValidationError: unknown field or row key
    """
    if field not in EDITABLE_FIELDS:
        raise TariffValidationError(f"Field {field!r} is not editable")

    target = next((row for row in rows if row.key == row_key), None)
    if target is None:
        raise TariffValidationError(f"Row {row_key!r} not found in scope {scope.key}")

    value = sanitize_number_input(raw_value)
    updated: List[EditableRow] = []
    focus_key: Optional[str] = row_key

    if target.is_placeholder and value is not None:
        new_key = f"row-{scope.key}-{allocate_key()}"
        converted = target.model_copy(update={
            "key": new_key,
            "is_placeholder": False,
            "is_new": True,
            "order_token": _next_order_token(rows, now_ms),
            field: value,
        })
        updated = [converted if row.key == row_key else row for row in rows]
        real_count = sum(1 for row in updated if not row.is_placeholder)
        updated.append(create_placeholder_row(scope, real_count + 1, allocate_key))
        focus_key = new_key
    elif target.is_placeholder:
        updated = list(rows)
    else:
        edited = target.model_copy(update={field: value})
        updated = [edited if row.key == row_key else row for row in rows]
        if _is_cleared(edited):
            focus_key = None

    normalized = normalize_scope_rows(scope, updated, allocate_key)
    focus = FocusRequest(scope_key=scope.key, row_key=focus_key, field=field) if focus_key else None
    return RowEdit(rows=normalized, focus=focus)
