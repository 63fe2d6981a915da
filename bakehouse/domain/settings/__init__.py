"""Tenant-scoped key/value settings and the typed TenantConfig snapshot."""

from .router import router
from .service import get_tenant_config, load_tenant_config

__all__ = ["router", "get_tenant_config", "load_tenant_config"]
