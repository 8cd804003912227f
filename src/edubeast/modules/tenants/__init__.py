"""
Tenants module - provisioned schools, their branding and feature flags.
"""

from edubeast.modules.tenants.models import FEATURE_KEYS, Tenant, TenantFeature, TenantStatus
from edubeast.modules.tenants.repository import TenantRepository

__all__ = ["FEATURE_KEYS", "Tenant", "TenantFeature", "TenantStatus", "TenantRepository"]
