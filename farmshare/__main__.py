"""
Point d'entrée principal pour le backend FastAPI.

Usage:
    python -m farmshare

Ce mode lance uvicorn directement et lit quelques variables d'environnement:
- HOST: interface d’écoute (par défaut 0.0.0.0)
- PORT: port d’écoute (par défaut 8000)
- UVICORN_RELOAD: active le reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau de logs uvicorn (ex: "info", "debug")
"""
import uvicorn
import os

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    reload_flag = os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes")
    log_level = os.environ.get("LOG_LEVEL", "info")
    uvicorn.run(
        "farmshare.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=port,
        reload=reload_flag,
        log_level=log_level,
        proxy_headers=True,
    )
