from .router import admin_router, cron_router, router

__all__ = ["router", "admin_router", "cron_router"]
