from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
import logging

import requests

from rankitpro.models.check_in import CheckIn

REQUEST_TIMEOUT = 20

DEFAULT_SYNC_SETTINGS = {
    'syncCustomers': True,
    'createNewCustomers': True,
    'updateExistingCustomers': True,
    'syncCheckInsAsJobs': True,
    'syncPhotos': True,
    'customerMatchStrategy': 'email',
}


class CRMError(Exception):
    """Raised when a CRM call fails; ``retryable`` is False for credential problems."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class CRMAuthError(CRMError):
    def __init__(self, message: str):
        super().__init__(message, retryable=False)


class BaseCRMConnector(ABC):
    """Common HTTP plumbing and check-in sync flow for field-service CRMs."""

    name: str = ""
    display_name: str = ""
    description: str = ""
    credential_fields: List[str] = []
    base_url: str = ""

    def __init__(self, credentials: Dict[str, Any]) -> None:
        missing = [field for field in self.credential_fields if not credentials.get(field)]
        if missing:
            raise CRMAuthError(f"{self.display_name} integration requires {', '.join(missing)}")
        self.credentials = credentials
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    @abstractmethod
    def _auth_headers(self) -> Dict[str, str]:
        pass

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        headers.update(self._auth_headers())
        try:
            response = requests.request(
                method, f"{self.base_url}{endpoint}", headers=headers, timeout=REQUEST_TIMEOUT, **kwargs
            )
        except requests.RequestException as e:
            raise CRMError(f"{self.display_name} request failed: {e}")

        if response.status_code in (401, 403):
            raise CRMAuthError(f"{self.display_name} rejected the credentials")
        if response.status_code >= 400:
            raise CRMError(f"{self.display_name} returned {response.status_code}: {response.text[:200]}")
        if not response.content:
            return {}
        return response.json()

    @abstractmethod
    def test_connection(self) -> bool:
        pass

    @abstractmethod
    def find_customer(self, check_in: CheckIn, strategy: str) -> Optional[str]:
        pass

    @abstractmethod
    def create_customer(self, check_in: CheckIn) -> Optional[str]:
        pass

    @abstractmethod
    def update_customer(self, customer_id: str, check_in: CheckIn) -> None:
        pass

    @abstractmethod
    def create_job(self, customer_id: str, check_in: CheckIn, technician_name: str, photos: List[str]) -> Optional[str]:
        pass

    def sync_customer(self, check_in: CheckIn, settings: Dict[str, Any]) -> Optional[str]:
        """Find or create the visit's customer and return its CRM id."""
        if not check_in.customer_name and not check_in.customer_email and not check_in.customer_phone:
            return None

        customer_id = self.find_customer(check_in, settings.get('customerMatchStrategy', 'email'))
        if customer_id:
            if settings.get('updateExistingCustomers', True):
                self.update_customer(customer_id, check_in)
            return customer_id

        if settings.get('createNewCustomers', True):
            return self.create_customer(check_in)
        return None

    def sync_check_in(self, check_in: CheckIn, technician_name: str, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        settings = {**DEFAULT_SYNC_SETTINGS, **(settings or {})}
        result = {'crm': self.name, 'checkInId': check_in.id, 'customerId': None, 'jobId': None}

        if settings.get('syncCustomers'):
            result['customerId'] = self.sync_customer(check_in, settings)

        if settings.get('syncCheckInsAsJobs') and result['customerId']:
            photos = list(check_in.photos or []) if settings.get('syncPhotos') else []
            result['jobId'] = self.create_job(result['customerId'], check_in, technician_name, photos)

        self.logger.info(f"Synced check-in {check_in.id} to {self.display_name}: {result}")
        return result

    @staticmethod
    def split_name(full_name: Optional[str]):
        parts = (full_name or '').strip().split(' ', 1)
        return parts[0], (parts[1] if len(parts) > 1 else '')

    @staticmethod
    def job_notes(check_in: CheckIn) -> str:
        notes = [
            check_in.notes,
            f"Work Performed: {check_in.work_performed}" if check_in.work_performed else None,
            f"Materials Used: {check_in.materials_used}" if check_in.materials_used else None,
        ]
        return "\n\n".join(n for n in notes if n)
