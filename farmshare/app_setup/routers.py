"""
Registre central des routers.
- API v1: auth, newsletter, paystack
- Admin: maintenance sécurité
- Health: health_router
"""
from fastapi import FastAPI
from farmshare.auth.views import router as auth_router
from farmshare.newsletter.views import router as newsletter_router
from farmshare.paystack.views import router as paystack_router
from farmshare.security.views import router as security_admin_router
from farmshare.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(auth_router)
    app.include_router(newsletter_router)
    app.include_router(paystack_router)
    # Admin
    app.include_router(security_admin_router)
    # Health & monitoring
    app.include_router(health_router)
