# farmshare.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend FarmShare.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, JWT, SendGrid, Google, Paystack)
- Sécurité cookies, CORS/hosts
- Durées de vie (OTP, reset, tokens) et tâche de maintenance
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name, "")) or default)
    except ValueError:
        return default

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# JWT: signature des access/refresh tokens (obligatoire, create_app refuse de démarrer sans)
JWT_SECRET = _clean_env(os.getenv("JWT_SECRET") or "")
JWT_ALGORITHM = _clean_env(os.getenv("JWT_ALGORITHM") or "HS256")
ACCESS_TOKEN_EXPIRES_MINUTES = _int_env("ACCESS_TOKEN_EXPIRES_MINUTES", 60)
REFRESH_TOKEN_EXPIRES_DAYS = _int_env("REFRESH_TOKEN_EXPIRES_DAYS", 7)

# OTP / reset mot de passe
OTP_EXPIRY_MINUTES = _int_env("OTP_EXPIRY_MINUTES", 10)
RESET_TOKEN_EXPIRY_MINUTES = _int_env("RESET_TOKEN_EXPIRY_MINUTES", 60)

# Cookies / CORS
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Front: liens envoyés par email et redirection OAuth
FRONTEND_URL = _clean_env(os.getenv("FRONTEND_URL") or "http://localhost:3000").rstrip("/")
FRONTEND_BASE_URL = _clean_env(os.getenv("FRONTEND_BASE_URL") or FRONTEND_URL).rstrip("/")

# SendGrid (emails transactionnels + newsletter)
SENDGRID_API_KEY = _clean_env(os.getenv("SENDGRID_API_KEY") or "")
SENDGRID_SENDER_EMAIL = _clean_env(os.getenv("SENDGRID_SENDER_EMAIL") or "")
SENDGRID_SENDER_NAME = _clean_env(os.getenv("SENDGRID_SENDER_NAME") or "FarmShare")

# Google OAuth
GOOGLE_CLIENT_ID = _clean_env(os.getenv("GOOGLE_CLIENT_ID") or "")
GOOGLE_CLIENT_SECRET = _clean_env(os.getenv("GOOGLE_CLIENT_SECRET") or "")
GOOGLE_CALLBACK_URL = _clean_env(os.getenv("GOOGLE_CALLBACK_URL") or "http://localhost:8000/api/v1/auth/google/callback")

# Paystack: vérification bancaire, transferts, transactions
PAYSTACK_SECRET_KEY = _clean_env(os.getenv("PAYSTACK_SECRET_KEY") or "")
PAYSTACK_BASE_URL = _clean_env(os.getenv("PAYSTACK_BASE_URL") or "https://api.paystack.co").rstrip("/")
PAYSTACK_CALLBACK_URL = _clean_env(os.getenv("PAYSTACK_CALLBACK_URL") or "")

# Tâche de maintenance (nettoyage sécurité)
MAINTENANCE_INTERVAL_SECONDS = _int_env("MAINTENANCE_INTERVAL_SECONDS", 3600)

