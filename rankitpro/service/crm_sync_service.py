"""
CRM Sync Service.

Pushes technician visits into the field-service CRMs a company has
connected (Housecall Pro, ServiceTitan) and keeps a rolling history of
the results on the company row.

Integration settings live in ``companies.crm_integrations``:

    {
        "housecall_pro": {
            "credentials": {"apiKey": "..."},
            "enabled": true,
            "syncSettings": {"syncCustomers": true, ...},
            "configuredAt": "2024-01-01T00:00:00+00:00"
        }
    }
"""

import logging
from typing import Any, Dict, List, Optional

from rankitpro.integrations.crm import CRMConnectorFactory, CRMError, DEFAULT_SYNC_SETTINGS
from rankitpro.models.check_in import CheckIn
from rankitpro.models.company import Company
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)

SYNC_HISTORY_LIMIT = 50


def configured_crms(company: Company) -> Dict[str, Dict[str, Any]]:
    return dict(company.crm_integrations or {})


def save_integration(company: Company, crm_name: str, credentials: Dict[str, Any], sync_settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    integrations = configured_crms(company)
    integrations[crm_name] = {
        'credentials': credentials,
        'enabled': True,
        'syncSettings': {**DEFAULT_SYNC_SETTINGS, **(sync_settings or {})},
        'configuredAt': utcnow().isoformat(),
    }
    CompanyServiceSingleton.get_instance().update(company.id, {'crm_integrations': integrations})
    company.crm_integrations = integrations
    logger.info(f"Company {company.id} connected {crm_name}")
    return integrations[crm_name]


def remove_integration(company: Company, crm_name: str) -> bool:
    integrations = configured_crms(company)
    if crm_name not in integrations:
        return False
    integrations.pop(crm_name)
    CompanyServiceSingleton.get_instance().update(company.id, {'crm_integrations': integrations or None})
    company.crm_integrations = integrations or None
    logger.info(f"Company {company.id} disconnected {crm_name}")
    return True


def record_history(company: Company, entries: List[Dict[str, Any]]) -> None:
    """Prepend sync results, keeping only the most recent entries."""
    history = list(entries) + list(company.crm_sync_history or [])
    history = history[:SYNC_HISTORY_LIMIT]
    CompanyServiceSingleton.get_instance().update(company.id, {'crm_sync_history': history})
    company.crm_sync_history = history


def sync_check_in(company: Company, check_in: CheckIn, technician_name: str, crm_name: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Sync a check-in to every enabled CRM (or only ``crm_name``).

    Failures are captured per CRM in the returned results instead of raised.
    """
    results = []
    for name, integration in configured_crms(company).items():
        if crm_name and name != crm_name:
            continue
        if not integration.get('enabled', True):
            continue

        entry = {'crm': name, 'checkInId': check_in.id, 'syncedAt': utcnow().isoformat()}
        try:
            connector = CRMConnectorFactory.get_connector(name, integration.get('credentials') or {})
            if not connector:
                raise CRMError(f"Unsupported CRM {name}", retryable=False)
            entry.update(connector.sync_check_in(check_in, technician_name, integration.get('syncSettings')))
            entry['success'] = True
        except CRMError as e:
            logger.error(f"CRM sync to {name} failed for check-in {check_in.id}: {e}")
            entry.update({'success': False, 'error': str(e), 'retryable': e.retryable})
        results.append(entry)

    if results:
        record_history(company, results)
    return results
