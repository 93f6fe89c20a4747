"""
Tariff Service

Coordinates:
- loading tariffs and topology (repository)
- checking save requests (validation.py)
- applying a save atomically: flags, tiers and modification stamp are
  committed together or not at all

This keeps api.py limited to HTTP concerns.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.services.database.models import Facility
from backend.services.settings.tariff_settings import TariffSettings
from .schemas import BikeType, Section, TariffData, TariffSavePayload
from .tariff_repository import TariffRepository
from .validation import validate_save_payload

logger = logging.getLogger(__name__)


class FacilityNotFoundError(LookupError):
    """Raised when a facility id does not exist."""

    def __init__(self, facility_id: str):
        super().__init__(f"Facility {facility_id!r} not found.")
        self.facility_id = facility_id


class TariffService:
    def __init__(self, repo: TariffRepository, settings: Optional[TariffSettings] = None):
        self.repo = repo
        self.settings = settings or TariffSettings.from_env()

    def _facility(self, facility_id: str) -> Facility:
        facility = self.repo.get_facility(facility_id)
        if facility is None:
            raise FacilityNotFoundError(facility_id)
        return facility

    def get_tariffs(self, facility_id: str) -> TariffData:
        return self.repo.load_tariffs(self._facility(facility_id))

    def get_sections(self, facility_id: str) -> List[Section]:
        self._facility(facility_id)
        return self.repo.list_sections(facility_id)

    def list_bike_types(self) -> List[BikeType]:
        return self.repo.list_bike_types()

    def save_tariffs(
        self,
        facility_id: str,
        payload: TariffSavePayload,
        editor: Optional[str] = None,
    ) -> TariffData:
        """
        Validates and applies a save request.

        Args:
            facility_id: facility to save
            payload: TariffSavePayload
            editor: name recorded as the last editor

        Returns:
            TariffData as stored after the save

        Raises:
            FacilityNotFoundError: unknown facility
            TariffValidationError: the payload breaks a tariff rule
        """
        facility = self._facility(facility_id)
        validate_save_payload(payload, max_tiers=self.settings.max_tiers_per_scope)

        try:
            self.repo.set_flags(
                facility,
                uniform_across_sections=payload.uniform_across_sections,
                uniform_across_bike_types=payload.uniform_across_bike_types,
            )
            inserted = None
            if payload.tiers is not None:
                inserted = self.repo.replace_tiers(facility, payload.tiers)
            self.repo.touch(facility, editor)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            logger.exception("Saving tariffs of facility %s failed", facility_id)
            raise

        logger.info(
            "Saved tariffs of facility %s (flags=%s/%s, tiers written=%s)",
            facility_id,
            facility.uniform_across_sections,
            facility.uniform_across_bike_types,
            inserted,
        )
        return self.repo.load_tariffs(facility)
