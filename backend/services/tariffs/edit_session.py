"""
Tariff Edit Session

Owns the state of one open tariff editor: the last persisted snapshot, the
granularity flags the operator picked and the editable draft per scope.
Every operation delegates to the pure functions of this package; the session
only keeps their results together and guards the save call.

Typical use:

    session = TariffEditSession.open(TariffClient(), "facility-1")
    session.set_flags(uniform_across_sections=False)
    focus = session.update_field("section:3", row_key, "cost", "1,50")
    if session.can_save:
        session.save()
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .change_log import build_change_log, summarize_changes
from .classifier import classify_tiers
from .editable_rows import KeyAllocator, RowKeyAllocator, apply_field_edit, build_editable_rows
from .payload import build_save_payload, draft_to_tier_rows
from .schemas import (
    ChangeEntry,
    EditableRow,
    FocusRequest,
    GranularityFlags,
    ScopeDescriptor,
    Section,
    TariffData,
    TariffSavePayload,
    TariffTierRow,
)
from .scopes import resolve_scopes
from .tariff_client import TariffPersistence, TariffPersistenceError
from .validation import TariffValidationError, has_invalid_rows, invalid_row_keys

logger = logging.getLogger(__name__)


class TariffEditSession:
    """
    Editor state for the tariffs of one facility.

    The snapshot is only ever replaced by what the server returns after a
    successful save, never by the local draft.
    """

    def __init__(
        self,
        facility_id: str,
        snapshot: TariffData,
        sections: Iterable[Section],
        bike_type_names: Mapping[int, str],
        persistence: TariffPersistence,
        allocate_key: Optional[KeyAllocator] = None,
    ):
        self.facility_id = facility_id
        self.snapshot = snapshot
        self.sections = list(sections)
        self.bike_type_names = dict(bike_type_names)
        self.persistence = persistence
        self.allocate_key = allocate_key or RowKeyAllocator()

        self.pending_flags: Optional[GranularityFlags] = None
        self.is_saving = False
        self.last_error: Optional[str] = None
        self.last_focus: Optional[FocusRequest] = None

        self.scopes: List[ScopeDescriptor] = []
        self.scope_meta: Dict[str, ScopeDescriptor] = {}
        self.scope_order: List[str] = []
        self.original_by_scope: Dict[str, List[TariffTierRow]] = {}
        self.draft_by_scope: Dict[str, List[EditableRow]] = {}
        self.discarded: List[TariffTierRow] = []
        self._rebuild()

    @classmethod
    def open(cls, persistence: TariffPersistence, facility_id: str) -> "TariffEditSession":
        """Loads tariffs and topology of a facility and starts a session on them."""
        snapshot = persistence.load_tariffs(facility_id)
        sections = persistence.load_sections(facility_id)
        bike_type_names = persistence.load_bike_type_names()
        logger.info(
            "Opened tariff editor for facility %s (%d tiers, %d sections)",
            facility_id, len(snapshot.tiers), len(sections),
        )
        return cls(facility_id, snapshot, sections, bike_type_names, persistence)

    # ---------------------------------------------------------------
    # Flags and scopes
    # ---------------------------------------------------------------

    @property
    def persisted_flags(self) -> GranularityFlags:
        return self.snapshot.flags

    @property
    def flags(self) -> GranularityFlags:
        return self.pending_flags or self.persisted_flags

    @property
    def flags_changed(self) -> bool:
        return self.pending_flags is not None

    def set_flags(
        self,
        uniform_across_sections: Optional[bool] = None,
        uniform_across_bike_types: Optional[bool] = None,
    ) -> GranularityFlags:
        """
        Switches the pricing granularity.

        The draft is rebuilt from the snapshot under the new flags, so edits
        made before the switch are dropped. Switching back to the persisted
        flags leaves no pending flag change.
        """
        self._ensure_not_saving()
        current = self.flags
        flags = GranularityFlags(
            uniform_across_sections=(
                current.uniform_across_sections
                if uniform_across_sections is None
                else uniform_across_sections
            ),
            uniform_across_bike_types=(
                current.uniform_across_bike_types
                if uniform_across_bike_types is None
                else uniform_across_bike_types
            ),
        )
        self.pending_flags = None if flags == self.persisted_flags else flags
        self._rebuild()
        return self.flags

    def _rebuild(self) -> None:
        flags = self.flags
        classified = classify_tiers(self.snapshot.tiers, flags)
        self.scopes = resolve_scopes(flags, self.sections, self.bike_type_names, self.snapshot.tiers)
        self.scope_meta = {scope.key: scope for scope in self.scopes}
        self.scope_order = [scope.key for scope in self.scopes]
        self.original_by_scope = {
            key: classified.grouped.get(key, []) for key in self.scope_order
        }
        self.draft_by_scope = {
            scope.key: build_editable_rows(scope, self.original_by_scope[scope.key], self.allocate_key)
            for scope in self.scopes
        }
        self.discarded = classified.discarded
        self.last_focus = None

        if self.discarded:
            logger.info(
                "%d tariff row(s) of facility %s do not fit flags %s",
                len(self.discarded), self.facility_id, flags.model_dump(),
            )

    # ---------------------------------------------------------------
    # Editing
    # ---------------------------------------------------------------

    def _ensure_not_saving(self) -> None:
        if self.is_saving:
            raise TariffValidationError("Tariffs cannot be edited while a save is in progress.")

    def rows(self, scope_key: str) -> List[EditableRow]:
        if scope_key not in self.draft_by_scope:
            raise TariffValidationError(f"Unknown scope: {scope_key!r}")
        return list(self.draft_by_scope[scope_key])

    def update_field(
        self,
        scope_key: str,
        row_key: str,
        field: str,
        raw_value: Union[str, int, float, None],
        now_ms: Optional[int] = None,
    ) -> Optional[FocusRequest]:
        """
        Applies one operator edit.

        Returns:
            FocusRequest for the field the cursor belongs in, or None if the
            edited row was removed
        """
        self._ensure_not_saving()
        scope = self.scope_meta.get(scope_key)
        if scope is None:
            raise TariffValidationError(f"Unknown scope: {scope_key!r}")

        edit = apply_field_edit(
            scope,
            self.draft_by_scope[scope_key],
            row_key,
            field,
            raw_value,
            self.allocate_key,
            now_ms=now_ms,
        )
        self.draft_by_scope[scope_key] = edit.rows
        self.last_focus = edit.focus
        return edit.focus

    def discard(self) -> None:
        """Drops the draft and any pending flag change."""
        self._ensure_not_saving()
        self.pending_flags = None
        self.last_error = None
        self._rebuild()

    cancel = discard

    # ---------------------------------------------------------------
    # Derived state
    # ---------------------------------------------------------------

    def normalized_draft(self) -> Dict[str, List[TariffTierRow]]:
        return draft_to_tier_rows(self.draft_by_scope, self.scope_meta)

    def has_invalid_rows(self) -> bool:
        return has_invalid_rows(self.draft_by_scope)

    def invalid_row_keys(self) -> List[str]:
        return invalid_row_keys(self.draft_by_scope)

    def change_log(self) -> List[ChangeEntry]:
        return build_change_log(
            self.original_by_scope,
            self.normalized_draft(),
            self.scope_meta,
            self.discarded,
        )

    def change_summary(self) -> Dict[str, int]:
        return summarize_changes(self.change_log())

    @property
    def has_changes(self) -> bool:
        return self.flags_changed or bool(self.change_log())

    @property
    def can_save(self) -> bool:
        return not self.is_saving and self.has_changes and not self.has_invalid_rows()

    def incompatibility_warning(self) -> Optional[str]:
        if not self.discarded:
            return None
        return (
            f"{len(self.discarded)} tariff row(s) do not fit the current settings "
            f"and will be removed on save."
        )

    def build_payload(self) -> TariffSavePayload:
        return build_save_payload(
            self.normalized_draft(),
            self.flags,
            self.persisted_flags,
            self.change_log(),
            scope_order=self.scope_order,
        )

    # ---------------------------------------------------------------
    # Saving
    # ---------------------------------------------------------------

    def save(self) -> TariffData:
        """
        Sends the draft to the persistence side.

        On success the snapshot becomes the returned server state and the
        draft is rebuilt from it. On failure the draft is kept as it is and
        the server message is available as last_error.

        Raises:
            TariffValidationError: invalid rows, nothing to save or a save in progress
            TariffPersistenceError: the save failed
        """
        self._ensure_not_saving()
        if self.has_invalid_rows():
            raise TariffValidationError("Resolve all invalid rows before saving.")

        payload = self.build_payload()
        if payload.is_empty():
            raise TariffValidationError("There are no changes to save.")

        self.is_saving = True
        self.last_error = None
        try:
            data = self.persistence.save_tariffs(self.facility_id, payload)
        except TariffPersistenceError as e:
            self.last_error = str(e)
            logger.warning("Saving tariffs of facility %s failed: %s", self.facility_id, e)
            raise
        finally:
            self.is_saving = False

        self.apply_saved(data)
        logger.info("Saved tariffs of facility %s", self.facility_id)
        return data

    def apply_saved(self, data: TariffData) -> None:
        """Adopts the server state after a save and starts a fresh draft from it."""
        self.snapshot = data
        self.pending_flags = None
        self.last_error = None
        self._rebuild()
