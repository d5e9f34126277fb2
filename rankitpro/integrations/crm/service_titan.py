from datetime import datetime, timedelta
from typing import Dict, Any, Optional, List

import requests

from rankitpro.integrations.crm.base_crm_connector import (
    BaseCRMConnector,
    CRMError,
    CRMAuthError,
    REQUEST_TIMEOUT,
)
from rankitpro.models.check_in import CheckIn

TOKEN_URL = "https://auth.servicetitan.io/connect/token"


class ServiceTitanConnector(BaseCRMConnector):
    name = "service_titan"
    display_name = "ServiceTitan"
    description = "Sync customers and jobs with ServiceTitan"
    credential_fields = ["clientId", "clientSecret", "tenantId"]
    base_url = "https://api.servicetitan.io/v2"

    def __init__(self, credentials: Dict[str, Any]) -> None:
        super().__init__(credentials)
        self.base_url = f"{self.base_url}/tenant/{credentials['tenantId']}"
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None

    def _authenticate(self) -> str:
        if self._access_token and self._token_expiry and datetime.now() < self._token_expiry:
            return self._access_token

        try:
            response = requests.post(
                TOKEN_URL,
                data={
                    'grant_type': 'client_credentials',
                    'client_id': self.credentials['clientId'],
                    'client_secret': self.credentials['clientSecret'],
                    'scope': 'servicetitan.api',
                },
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise CRMError(f"ServiceTitan authentication request failed: {e}")

        if response.status_code != 200:
            raise CRMAuthError("Failed to authenticate with ServiceTitan")

        payload = response.json()
        self._access_token = payload['access_token']
        # refresh a minute early
        self._token_expiry = datetime.now() + timedelta(seconds=int(payload.get('expires_in', 900)) - 60)
        return self._access_token

    def _auth_headers(self) -> Dict[str, str]:
        return {
            'Authorization': f"Bearer {self._authenticate()}",
            'ST-App-Key': self.credentials.get('appKey') or self.credentials['clientId'],
        }

    def test_connection(self) -> bool:
        try:
            self._request('GET', '/settings/technicians', params={'page': 1, 'pageSize': 1})
            return True
        except CRMError as e:
            self.logger.warning(f"ServiceTitan connection test failed: {e}")
            return False

    def find_customer(self, check_in: CheckIn, strategy: str) -> Optional[str]:
        searches = []
        if check_in.customer_email and strategy in ('email', 'any'):
            searches.append({'email': check_in.customer_email})
        if check_in.customer_phone and strategy in ('phone', 'any', 'email'):
            searches.append({'phone': check_in.customer_phone})
        if check_in.customer_name and strategy in ('name', 'any'):
            searches.append({'name': check_in.customer_name})

        for params in searches:
            response = self._request('GET', '/crm/customers', params=params)
            customers = response.get('data') or []
            if customers:
                return str(customers[0].get('id'))
        return None

    def _customer_payload(self, check_in: CheckIn) -> Dict[str, Any]:
        contacts = []
        if check_in.customer_email:
            contacts.append({'type': 'Email', 'value': check_in.customer_email})
        if check_in.customer_phone:
            contacts.append({'type': 'MobilePhone', 'value': check_in.customer_phone})
        return {
            'name': check_in.customer_name or 'Unknown Customer',
            'type': 'Residential',
            'contacts': contacts,
            'address': {
                'street': check_in.address or '',
                'city': check_in.city or '',
                'state': check_in.state or '',
                'zip': check_in.zip or '',
                'country': 'USA',
            },
        }

    def create_customer(self, check_in: CheckIn) -> Optional[str]:
        customer = self._request('POST', '/crm/customers', json=self._customer_payload(check_in))
        return str(customer.get('id')) if customer.get('id') else None

    def update_customer(self, customer_id: str, check_in: CheckIn) -> None:
        payload = self._customer_payload(check_in)
        payload.pop('contacts', None)
        self._request('PATCH', f'/crm/customers/{customer_id}', json=payload)

    def create_job(self, customer_id: str, check_in: CheckIn, technician_name: str, photos: List[str]) -> Optional[str]:
        payload = {
            'customerId': int(customer_id) if str(customer_id).isdigit() else customer_id,
            'summary': f"{check_in.job_type} - {technician_name}" if technician_name else check_in.job_type,
            'notes': self.job_notes(check_in),
        }
        job = self._request('POST', '/jpm/jobs', json=payload)
        job_id = job.get('id')
        for url in photos:
            try:
                self._request('POST', f'/forms/jobs/{job_id}/attachments', json={'url': url})
            except CRMError as e:
                self.logger.warning(f"Could not attach photo to job {job_id}: {e}")
        return str(job_id) if job_id else None
