from rankitpro.integrations.crm.base_crm_connector import (
    BaseCRMConnector,
    CRMError,
    CRMAuthError,
    DEFAULT_SYNC_SETTINGS,
)
from rankitpro.integrations.crm.crm_connector_factory import CRMConnectorFactory

__all__ = [
    'BaseCRMConnector',
    'CRMError',
    'CRMAuthError',
    'CRMConnectorFactory',
    'DEFAULT_SYNC_SETTINGS',
]
