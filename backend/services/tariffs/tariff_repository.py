"""
Tariff Repository

Database access for facility tariffs. This module only reads and writes
rows; the save rules live in validation.py and tariff_service.py.

Stored tiers always carry the facility id. Which of section_id and
section_bike_type_id are set depends on the scope the tier was saved for:

    facility             -> neither
    section:<id>         -> section_id
    bikeType:<sbtId>     -> section_bike_type_id and its section_id
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from backend.services.database.models import (
    BikeType as BikeTypeModel,
    Facility,
    Section as SectionModel,
    SectionBikeType,
    TariffTier,
)
from .schemas import (
    FACILITY_SCOPE_KEY,
    BikeType,
    PermittedBikeType,
    Section,
    TariffData,
    TariffTierPayload,
    TariffTierRow,
)

logger = logging.getLogger(__name__)


def _to_row(
    tier: TariffTier,
    section_id: Optional[int],
    section_bike_type_id: Optional[int],
    bike_type_id: Optional[int] = None,
) -> TariffTierRow:
    return TariffTierRow(
        row_id=tier.id,
        order=tier.tier_order,
        duration_hours=tier.duration_hours,
        cost=tier.cost,
        section_id=section_id,
        section_bike_type_id=section_bike_type_id,
        bike_type_id=bike_type_id,
    )


class TariffRepository:
    """Reads and writes facility tariffs through one SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def get_facility(self, facility_id: str) -> Optional[Facility]:
        return self.session.get(Facility, facility_id)

    def _section_ids(self, facility_id: str) -> List[int]:
        return list(self.session.scalars(
            select(SectionModel.id).where(SectionModel.facility_id == facility_id)
        ))

    def _section_bike_types(self, facility_id: str) -> List[SectionBikeType]:
        section_ids = self._section_ids(facility_id)
        return list(self.session.scalars(
            select(SectionBikeType).where(or_(
                SectionBikeType.facility_id == facility_id,
                SectionBikeType.section_id.in_(section_ids),
            ))
        ))

    # ---------------------------------------------------------------
    # Load
    # ---------------------------------------------------------------

    def load_tiers(self, facility: Facility) -> List[TariffTierRow]:
        """
        Loads the tiers that match the facility's persisted granularity.

        - both uniform: tiers without section and section bike type
        - per section: tiers of the facility's sections, as stored
        - per bike type: tiers of the facility's section bike types, returned
          without section id
        - per section and bike type: tiers of section bike types that belong
          to one of the facility's sections, with that section id

        In both bike type modes the row also carries the bike type id of its
        section bike type.
        """
        order = (TariffTier.tier_order, TariffTier.id)

        if facility.uniform_across_sections and facility.uniform_across_bike_types:
            tiers = self.session.scalars(
                select(TariffTier)
                .where(
                    TariffTier.facility_id == facility.id,
                    TariffTier.section_id.is_(None),
                    TariffTier.section_bike_type_id.is_(None),
                )
                .order_by(*order)
            )
            return [_to_row(tier, None, None) for tier in tiers]

        if facility.uniform_across_bike_types:
            section_ids = self._section_ids(facility.id)
            tiers = self.session.scalars(
                select(TariffTier)
                .where(TariffTier.section_id.in_(section_ids))
                .order_by(*order)
            )
            return [_to_row(tier, tier.section_id, tier.section_bike_type_id) for tier in tiers]

        section_bike_types = self._section_bike_types(facility.id)
        bike_type_of: Dict[int, Optional[int]] = {sbt.id: sbt.bike_type_id for sbt in section_bike_types}

        if facility.uniform_across_sections:
            sbt_ids = list(bike_type_of.keys())
            tiers = self.session.scalars(
                select(TariffTier)
                .where(TariffTier.section_bike_type_id.in_(sbt_ids))
                .order_by(*order)
            )
            return [
                _to_row(tier, None, tier.section_bike_type_id, bike_type_of[tier.section_bike_type_id])
                for tier in tiers
            ]

        section_of: Dict[int, int] = {
            sbt.id: sbt.section_id for sbt in section_bike_types if sbt.section_id is not None
        }
        tiers = self.session.scalars(
            select(TariffTier)
            .where(TariffTier.section_bike_type_id.in_(list(section_of.keys())))
            .order_by(*order)
        )
        return [
            _to_row(
                tier,
                section_of[tier.section_bike_type_id],
                tier.section_bike_type_id,
                bike_type_of[tier.section_bike_type_id],
            )
            for tier in tiers
        ]

    def load_tariffs(self, facility: Facility) -> TariffData:
        return TariffData(
            uniform_across_sections=facility.uniform_across_sections,
            uniform_across_bike_types=facility.uniform_across_bike_types,
            tiers=self.load_tiers(facility),
        )

    def list_sections(self, facility_id: str) -> List[Section]:
        """Active sections of a facility ordered by id, each with its permitted bike types."""
        sections = self.session.scalars(
            select(SectionModel)
            .where(SectionModel.facility_id == facility_id, SectionModel.is_active.is_(True))
            .order_by(SectionModel.id)
        )
        return [
            Section(
                section_id=section.id,
                title=section.title,
                permitted_bike_types=[
                    PermittedBikeType(
                        section_bike_type_id=sbt.id,
                        bike_type_id=sbt.bike_type_id,
                        allowed=sbt.allowed,
                    )
                    for sbt in section.bike_types
                ],
            )
            for section in sections
        ]

    def list_bike_types(self) -> List[BikeType]:
        bike_types = self.session.scalars(select(BikeTypeModel).order_by(BikeTypeModel.id))
        return [BikeType(bike_type_id=bt.id, name=bt.name) for bt in bike_types]

    # ---------------------------------------------------------------
    # Save
    # ---------------------------------------------------------------

    def set_flags(
        self,
        facility: Facility,
        uniform_across_sections: Optional[bool] = None,
        uniform_across_bike_types: Optional[bool] = None,
    ) -> None:
        if uniform_across_sections is not None:
            facility.uniform_across_sections = uniform_across_sections
        if uniform_across_bike_types is not None:
            facility.uniform_across_bike_types = uniform_across_bike_types

    def replace_tiers(self, facility: Facility, tiers: Dict[str, List[TariffTierPayload]]) -> int:
        """
        Deletes every tier of the facility and inserts the given ones.

        Rows with neither duration nor cost are skipped and the remaining rows
        of a scope are stored with orders 1..N. Rows of a section or section
        bike type that does not belong to the facility are skipped too.

        Returns:
            number of inserted tiers
        """
        section_ids = set(self._section_ids(facility.id))
        sbt_by_id = {sbt.id: sbt for sbt in self._section_bike_types(facility.id)}

        existing = self.session.scalars(
            select(TariffTier).where(or_(
                TariffTier.facility_id == facility.id,
                TariffTier.section_id.in_(list(section_ids)),
                TariffTier.section_bike_type_id.in_(list(sbt_by_id.keys())),
            ))
        )
        for tier in existing:
            self.session.delete(tier)
        self.session.flush()

        inserted = 0
        for scope_key, rows in tiers.items():
            section_id = None
            section_bike_type_id = None

            if scope_key.startswith("section:"):
                section_id = int(scope_key.split(":", 1)[1])
                if section_id not in section_ids:
                    logger.warning("Skipping tiers of %s: section not in facility %s", scope_key, facility.id)
                    continue
            elif scope_key.startswith("bikeType:"):
                section_bike_type_id = int(scope_key.split(":", 1)[1])
                sbt = sbt_by_id.get(section_bike_type_id)
                if sbt is None:
                    logger.warning("Skipping tiers of %s: unknown section bike type", scope_key)
                    continue
                section_id = sbt.section_id
            elif scope_key != FACILITY_SCOPE_KEY:
                logger.warning("Skipping tiers of unknown scope %s", scope_key)
                continue

            filled = [row for row in rows if row.duration_hours is not None or row.cost is not None]
            for order, row in enumerate(sorted(filled, key=lambda r: r.order), start=1):
                self.session.add(TariffTier(
                    facility_id=facility.id,
                    section_id=section_id,
                    section_bike_type_id=section_bike_type_id,
                    tier_order=order,
                    duration_hours=row.duration_hours,
                    cost=row.cost,
                ))
                inserted += 1

        return inserted

    def touch(self, facility: Facility, editor: Optional[str] = None) -> None:
        facility.editor_modified = editor
        facility.date_modified = datetime.now(timezone.utc)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
