# Routers package
from . import (
    subscription_router,
    xendit_router,
)

__all__ = [
    "subscription_router",
    "xendit_router",
]
