"""One APIRouter per domain; api_main mounts them all under /api."""
from __future__ import annotations

from . import admin, appointments, auth, billing, catalog, clients, clinical, notifications, pets

ROUTERS = (
    auth.router,
    catalog.router,
    appointments.router,
    appointments.cron_router,
    pets.router,
    clients.router,
    clinical.router,
    billing.router,
    admin.router,
    notifications.router,
)
