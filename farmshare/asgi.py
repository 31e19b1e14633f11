"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- En production, un process manager (ex: uvicorn, gunicorn avec workers uvicorn) importe `farmshare.asgi:app`.
- Toute la configuration (routes, middlewares, lifespan) est centralisée dans farmshare.app_setup.factory.
"""
import logging
from farmshare.app_setup.factory import create_app

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = create_app()
