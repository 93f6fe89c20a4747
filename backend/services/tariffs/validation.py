"""
Validation for tariff tiers

Two levels of checks live here:
- the per-row predicate the editor uses to mark rows and block saving
- the business rules the server applies to an incoming save payload

Pydantic (schemas.py) already checks types and required fields; this module
adds the rules that depend on combinations of values.
"""

import re
from typing import Iterable, List, Mapping

from backend.services.settings.tariff_settings import DEFAULT_MAX_TIERS_PER_SCOPE

from .schemas import EditableRow, TariffSavePayload, TariffTierPayload

SCOPE_KEY_PATTERN = re.compile(r"^(facility|section:\d+|bikeType:\d+)$")


class TariffValidationError(ValueError):
    """Raised when tariff rows or a save request violate the tariff rules."""
    pass


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise TariffValidationError(message)


def is_row_invalid(row: EditableRow) -> bool:
    """
    A non-placeholder row is invalid if exactly one of duration/cost is
    filled in, or if the duration is not positive. Placeholders never are.
    """
    if row.is_placeholder:
        return False

    has_duration = row.duration_hours is not None
    has_cost = row.cost is not None

    if has_duration != has_cost:
        return True
    if has_duration and row.duration_hours <= 0:
        return True
    return False


def has_invalid_rows(rows_by_scope: Mapping[str, Iterable[EditableRow]]) -> bool:
    return any(is_row_invalid(row) for rows in rows_by_scope.values() for row in rows)


def invalid_row_keys(rows_by_scope: Mapping[str, Iterable[EditableRow]]) -> List[str]:
    """Keys of all invalid rows, for inline highlighting."""
    return [row.key for rows in rows_by_scope.values() for row in rows if is_row_invalid(row)]


def _validate_scope_rows(scope_key: str, rows: List[TariffTierPayload], max_tiers: int) -> None:
    _require(
        len(rows) <= max_tiers,
        f"At most {max_tiers} tiers are allowed per scope (scope={scope_key}, got {len(rows)})"
    )

    orders = [row.order for row in rows]
    _require(
        orders == list(range(1, len(rows) + 1)),
        f"Tier order must run 1..{len(rows)} without gaps for scope={scope_key}, got {orders}"
    )

    for row in rows:
        has_duration = row.duration_hours is not None
        has_cost = row.cost is not None
        _require(
            has_duration == has_cost,
            f"durationHours and cost must both be set or both be empty (scope={scope_key}, order={row.order})"
        )
        if has_duration:
            _require(
                row.duration_hours > 0,
                f"durationHours must be > 0 (scope={scope_key}, order={row.order})"
            )
            _require(
                row.cost >= 0,
                f"cost must be >= 0 (scope={scope_key}, order={row.order})"
            )


def validate_save_payload(payload: TariffSavePayload, max_tiers: int = DEFAULT_MAX_TIERS_PER_SCOPE) -> None:
    """
    Validates a save request before anything is written.

    Args:
        payload: TariffSavePayload
        max_tiers: maximum number of tiers per scope

    Raises:
        TariffValidationError: if a rule is violated
    """
    _require(not payload.is_empty(), "There are no changes to save.")

    if payload.tiers is None:
        return

    for scope_key, rows in payload.tiers.items():
        _require(
            SCOPE_KEY_PATTERN.match(scope_key) is not None,
            f"Unknown scope key: {scope_key!r}"
        )
        _validate_scope_rows(scope_key, rows, max_tiers)
