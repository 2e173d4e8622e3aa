from eventhub.routers.auth import router as auth_router
from eventhub.routers.users import router as users_router
from eventhub.routers.events import router as events_router
from eventhub.routers.transactions import router as transactions_router
from eventhub.routers.admin import router as admin_router

__all__ = [
    "auth_router",
    "users_router",
    "events_router",
    "transactions_router",
    "admin_router"
]
