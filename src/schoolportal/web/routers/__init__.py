from schoolportal.web.routers.auth import router as auth_router
from schoolportal.web.routers.qr import router as qr_router
from schoolportal.web.routers.users import router as users_router

__all__ = [
    "auth_router",
    "qr_router",
    "users_router",
]
