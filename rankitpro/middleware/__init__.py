from rankitpro.middleware.auth import (
    require_auth,
    require_roles,
    require_super_admin,
    require_company_admin,
    can_access_company,
    get_current_user,
)
from rankitpro.middleware.subscription_check import require_active_subscription

__all__ = [
    "require_auth",
    "require_roles",
    "require_super_admin",
    "require_company_admin",
    "require_active_subscription",
    "can_access_company",
    "get_current_user",
]
