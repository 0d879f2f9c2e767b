# Routers package
from . import images_router
from . import notifications_router

__all__ = [
    "images_router",
    "notifications_router",
]
