"""
Factory d’application recommandée pour les entrypoints (ex: farmshare.asgi).
Ordonne les étapes d’initialisation de manière lisible et testable.
"""
from fastapi import FastAPI
from farmshare import config
from .lifespan import lifespan
from .middlewares import (
    register_basic_middlewares,
    register_security_middleware,
    register_no_cache_middleware,
    register_force_https_middleware,
)
from .exception_handlers import register_exception_handlers
from .routes import register_routes
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l’app FastAPI avec le lifespan et enregistre:
      - middlewares de base, sécurité, no-cache
      - gestionnaires d’exceptions et routes simples
      - tous les routers (auth, newsletter, paystack, admin, health)
      - redirection HTTPS en dernier (exécutée en premier)
    Lève RuntimeError si JWT_SECRET est absent.
    """
    if not config.JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set")
    app = FastAPI(title="FarmShare API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routes(app)
    register_routers(app)
    register_force_https_middleware(app)
    return app
