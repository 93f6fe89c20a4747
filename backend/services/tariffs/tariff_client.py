"""
Tariff API Client

Thin wrapper around the tariff endpoints, used by the edit session to load
tariffs and topology and to save the operator's changes.

Endpoints:
- GET /facilities/{facility_id}/tariffs
- PUT /facilities/{facility_id}/tariffs
- GET /facilities/{facility_id}/sections
- GET /bike-types
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from backend.services.settings.tariff_settings import TariffSettings
from .schemas import BikeType, Section, TariffData, TariffSavePayload

logger = logging.getLogger(__name__)


class TariffPersistenceError(RuntimeError):
    """A tariff request failed; carries the raw server message."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TariffPersistence(ABC):
    """
    What the edit session needs from the outside world: tariff data,
    facility topology and a way to save.
    """

    @abstractmethod
    def load_tariffs(self, facility_id: str) -> TariffData:
        pass

    @abstractmethod
    def load_sections(self, facility_id: str) -> List[Section]:
        pass

    @abstractmethod
    def load_bike_type_names(self) -> Dict[int, str]:
        pass

    @abstractmethod
    def save_tariffs(self, facility_id: str, payload: TariffSavePayload) -> TariffData:
        """
        Apply a save atomically and return the authoritative new state.

        Raises:
            TariffPersistenceError: if the save was rejected or failed
        """
        pass


class TariffClient(TariffPersistence):
    """Client for the facility tariff API."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        """
        Initialize the tariff client.

        Args:
            base_url: API base URL, defaults to TariffSettings.api_base_url
            timeout: Request timeout in seconds
        """
        settings = TariffSettings.from_env()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.session = requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'BikeparkTariffEditor/1.0'
        })

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("error")
            if detail:
                return detail if isinstance(detail, str) else str(detail)
        return str(body)

    def _request(self, method: str, endpoint: str, json: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make a request to the API.

        Raises:
            TariffPersistenceError: on transport errors and non-success responses
        """
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise TariffPersistenceError(str(e)) from e

        if not response.ok:
            message = self._error_message(response)
            logger.warning("%s %s returned %s: %s", method, url, response.status_code, message)
            raise TariffPersistenceError(message, status_code=response.status_code)
        return response.json()

    def load_tariffs(self, facility_id: str) -> TariffData:
        return TariffData.model_validate(self._request("GET", f"/facilities/{facility_id}/tariffs"))

    def load_sections(self, facility_id: str) -> List[Section]:
        data = self._request("GET", f"/facilities/{facility_id}/sections")
        return [Section.model_validate(item) for item in data]

    def load_bike_type_names(self) -> Dict[int, str]:
        """Bike type id -> display name; unnamed types get "Bike type <id>"."""
        data = self._request("GET", "/bike-types")
        names = {}
        for item in data:
            bike_type = BikeType.model_validate(item)
            names[bike_type.bike_type_id] = bike_type.name or f"Bike type {bike_type.bike_type_id}"
        return names

    def save_tariffs(self, facility_id: str, payload: TariffSavePayload) -> TariffData:
        """
        Send a save request.

        Returns:
            The authoritative tariff state after the save
        """
        data = self._request("PUT", f"/facilities/{facility_id}/tariffs", json=payload.to_request())
        return TariffData.model_validate(data)
