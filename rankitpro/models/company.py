from typing import Optional, Dict, Any
from datetime import datetime

from rankitpro.models.base_model import BaseModel


class Company(BaseModel):
    def __init__(self):
        self.id: int = None
        self.name: str = None
        self.plan: str = 'starter'
        self.subscription_plan_id: Optional[int] = None
        self.usage_limit: Optional[int] = None
        self.review_settings: Optional[Dict[str, Any]] = None
        self.wordpress_config: Optional[Dict[str, Any]] = None
        self.wordpress_api_key: Optional[str] = None
        self.crm_integrations: Optional[Dict[str, Any]] = None
        self.crm_sync_history: Optional[list] = None
        self.features_enabled: Optional[Dict[str, bool]] = None
        self.trial_start_date: Optional[datetime] = None
        self.trial_end_date: Optional[datetime] = None
        self.is_trial_active: bool = True
        self.is_active: bool = True
        self.sales_person_id: Optional[int] = None
        self.stripe_customer_id: Optional[str] = None
        self.stripe_subscription_id: Optional[str] = None
        self.created_at: Optional[datetime] = None

    @property
    def has_subscription(self) -> bool:
        return bool(self.stripe_subscription_id)

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialize with integration secrets masked."""
        data = self.to_dict()
        wp = dict(data.get('wordpress_config') or {})
        for secret in ('application_password', 'api_key'):
            if wp.get(secret):
                wp[secret] = '********'
        data['wordpress_config'] = wp or None
        if data.get('wordpress_api_key'):
            data['wordpress_api_key'] = '********'
        crm = {}
        for name, config in (data.get('crm_integrations') or {}).items():
            crm[name] = {
                'enabled': config.get('enabled', False),
                'syncSettings': config.get('syncSettings', {}),
                'configured': True,
            }
        data['crm_integrations'] = crm or None
        return data
