from typing import Dict, Any, List, Optional, Type
import logging

from rankitpro.integrations.crm.base_crm_connector import BaseCRMConnector
from rankitpro.integrations.crm.housecall_pro import HousecallProConnector
from rankitpro.integrations.crm.service_titan import ServiceTitanConnector


class CRMConnectorFactory:
    """
    Factory class for creating CRM connectors by name
    """

    _connectors: Dict[str, Type[BaseCRMConnector]] = {
        HousecallProConnector.name: HousecallProConnector,
        ServiceTitanConnector.name: ServiceTitanConnector,
    }
    _logger = logging.getLogger(__name__)

    @classmethod
    def normalize(cls, crm_name: str) -> str:
        return (crm_name or '').lower().replace('-', '_').replace(' ', '_')

    @classmethod
    def connector_exists(cls, crm_name: str) -> bool:
        return cls.normalize(crm_name) in cls._connectors

    @classmethod
    def get_connector(cls, crm_name: str, credentials: Dict[str, Any]) -> Optional[BaseCRMConnector]:
        connector_class = cls._connectors.get(cls.normalize(crm_name))
        if not connector_class:
            cls._logger.error(f"No CRM connector registered for {crm_name}")
            return None
        return connector_class(credentials)

    @classmethod
    def available(cls) -> List[Dict[str, Any]]:
        return [
            {
                'id': name,
                'name': connector.display_name,
                'description': connector.description,
                'credentialFields': list(connector.credential_fields),
            }
            for name, connector in cls._connectors.items()
        ]
