"""
Facility Tariff Package

This package provides the tiered-pricing engine of the facility tariff editor:
- scope resolution and row classification for the four pricing granularities
- editable rows with a trailing placeholder, validation and change log
- the save payload and the edit session tying it all together
- persistence: repository, service, REST API and HTTP client
"""

from .schemas import (
    ChangeEntry,
    EditableRow,
    FocusRequest,
    GranularityFlags,
    ScopeDescriptor,
    TariffData,
    TariffSavePayload,
    TariffTierRow,
)

from .classifier import classify_tiers, derive_scope_key
from .scopes import resolve_scopes
from .validation import TariffValidationError, is_row_invalid, validate_save_payload
from .tariff_client import TariffClient, TariffPersistence, TariffPersistenceError
from .edit_session import TariffEditSession

__all__ = [
    "ChangeEntry",
    "EditableRow",
    "FocusRequest",
    "GranularityFlags",
    "ScopeDescriptor",
    "TariffData",
    "TariffSavePayload",
    "TariffTierRow",
    "classify_tiers",
    "derive_scope_key",
    "resolve_scopes",
    "TariffValidationError",
    "is_row_invalid",
    "validate_save_payload",
    "TariffClient",
    "TariffPersistence",
    "TariffPersistenceError",
    "TariffEditSession",
]
