from typing import Dict, Any, Optional, List

from rankitpro.integrations.crm.base_crm_connector import BaseCRMConnector, CRMError
from rankitpro.models.check_in import CheckIn


class HousecallProConnector(BaseCRMConnector):
    name = "housecall_pro"
    display_name = "Housecall Pro"
    description = "Sync customers and jobs with Housecall Pro"
    credential_fields = ["apiKey"]
    base_url = "https://api.housecallpro.com/v1"

    def _auth_headers(self) -> Dict[str, str]:
        return {'Authorization': f"Bearer {self.credentials['apiKey']}"}

    def test_connection(self) -> bool:
        try:
            self._request('GET', '/customers', params={'limit': 1})
            return True
        except CRMError as e:
            self.logger.warning(f"Housecall Pro connection test failed: {e}")
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
            response = self._request('GET', '/customers', params=params)
            customers = response.get('customers') or []
            if customers:
                return str(customers[0].get('id'))
        return None

    def _customer_payload(self, check_in: CheckIn) -> Dict[str, Any]:
        first_name, last_name = self.split_name(check_in.customer_name)
        payload: Dict[str, Any] = {'first_name': first_name, 'last_name': last_name}
        if check_in.customer_email:
            payload['email'] = check_in.customer_email
        if check_in.customer_phone:
            payload['mobile_number'] = check_in.customer_phone
        if check_in.address:
            payload['addresses'] = [{
                'street': check_in.address,
                'city': check_in.city,
                'state': check_in.state,
                'zip': check_in.zip,
            }]
        return payload

    def create_customer(self, check_in: CheckIn) -> Optional[str]:
        customer = self._request('POST', '/customers', json=self._customer_payload(check_in))
        return str(customer.get('id')) if customer.get('id') else None

    def update_customer(self, customer_id: str, check_in: CheckIn) -> None:
        self._request('PUT', f'/customers/{customer_id}', json=self._customer_payload(check_in))

    def create_job(self, customer_id: str, check_in: CheckIn, technician_name: str, photos: List[str]) -> Optional[str]:
        payload = {
            'customer_id': customer_id,
            'description': check_in.job_type,
            'notes': self.job_notes(check_in),
            'assigned_employee_names': [technician_name] if technician_name else [],
        }
        if check_in.created_at:
            payload['schedule'] = {'scheduled_start': self.format_datetime(check_in.created_at)}
        job = self._request('POST', '/jobs', json=payload)
        job_id = job.get('id')
        for url in photos:
            try:
                self._request('POST', f'/jobs/{job_id}/attachments', json={'url': url})
            except CRMError as e:
                self.logger.warning(f"Could not attach photo to job {job_id}: {e}")
        return str(job_id) if job_id else None

    @staticmethod
    def format_datetime(value) -> str:
        return value.isoformat() if hasattr(value, 'isoformat') else str(value)
