"""
Facility Tariff API (FastAPI)

REST Endpoints:
- GET /facilities/{facility_id}/tariffs   -> tariffs under the persisted flags
- PUT /facilities/{facility_id}/tariffs   -> validate + save, returns the new state
- GET /facilities/{facility_id}/sections  -> active sections with permitted bike types
- GET /bike-types                         -> all bike types

Communication: JSON over REST (FastAPI), camelCase field names
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from backend.services.database.database import get_session
from .schemas import BikeType, Section, TariffData, TariffSavePayload
from .tariff_repository import TariffRepository
from .tariff_service import FacilityNotFoundError, TariffService
from .validation import TariffValidationError

router = APIRouter(tags=["tariffs"])


def get_tariff_service(session: Session = Depends(get_session)) -> TariffService:
    return TariffService(TariffRepository(session))


def _not_found(e: FacilityNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/facilities/{facility_id}/tariffs",
    response_model=TariffData,
    response_model_by_alias=True,
)
def get_tariffs(facility_id: str, service: TariffService = Depends(get_tariff_service)) -> TariffData:
    try:
        return service.get_tariffs(facility_id)
    except FacilityNotFoundError as e:
        raise _not_found(e)


@router.put(
    "/facilities/{facility_id}/tariffs",
    response_model=TariffData,
    response_model_by_alias=True,
)
def save_tariffs(
    facility_id: str,
    payload: TariffSavePayload,
    x_editor: Optional[str] = Header(default=None),
    service: TariffService = Depends(get_tariff_service),
) -> TariffData:
    """
    Saves flags and tiers in one transaction.

    Tiers of every scope present in the body replace all stored tiers of the
    facility; a body without tiers only changes the flags.
    """
    try:
        return service.save_tariffs(facility_id, payload, editor=x_editor)
    except FacilityNotFoundError as e:
        raise _not_found(e)
    except TariffValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.get(
    "/facilities/{facility_id}/sections",
    response_model=List[Section],
    response_model_by_alias=True,
)
def get_sections(facility_id: str, service: TariffService = Depends(get_tariff_service)) -> List[Section]:
    try:
        return service.get_sections(facility_id)
    except FacilityNotFoundError as e:
        raise _not_found(e)


@router.get("/bike-types", response_model=List[BikeType], response_model_by_alias=True)
def get_bike_types(service: TariffService = Depends(get_tariff_service)) -> List[BikeType]:
    return service.list_bike_types()
