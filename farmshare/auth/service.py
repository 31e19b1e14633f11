from datetime import timedelta
from typing import Optional, Dict, Any
import hmac
import logging
import secrets

from fastapi import HTTPException

from farmshare.auth.models import (
    AuthResponse,
    build_user_dict,
    build_session_dict,
    normalize_role,
    failure,
    handle_exception,
)
from farmshare.auth.tokens import (
    ACCESS,
    REFRESH,
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from farmshare.auth import oauth
from farmshare.config import OTP_EXPIRY_MINUTES, RESET_TOKEN_EXPIRY_MINUTES
from farmshare.email.service import send_otp_email, send_password_reset_email, EmailDeliveryError
from farmshare.security import service as security_service
from farmshare.users.repository import (
    get_user_by_email,
    get_user_by_id,
    get_user_by_google_id,
    create_user,
    update_user,
)
from farmshare.utils.dates import utcnow, iso, parse_ts
from farmshare.utils.security import hash_password, verify_password, hash_token
from farmshare.utils.validators import normalize_email, validate_password_strength
from .repository import (
    get_pending_signup,
    upsert_pending_signup,
    update_pending_signup,
    delete_pending_signup,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
NO_PENDING_SIGNUP = "No pending signup found for this email"
RESET_REQUESTED_MESSAGE = "If an account exists for this email, a password reset link has been sent"

def generate_otp() -> str:
    """Code à 6 chiffres (secrets, pas random)."""
    return f"{secrets.randbelow(10**6):06d}"

def _digest_matches(stored: Optional[str], candidate: Optional[str]) -> bool:
    if not stored or not candidate:
        return False
    return hmac.compare_digest(str(stored), hash_token(candidate))

def _issue_session(user: Dict[str, Any], message: Optional[str] = None) -> AuthResponse:
    """Émet une paire access/refresh; seul le condensat du refresh est conservé (rotation)."""
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user["id"])
    update_user(user["id"], {"refresh_token": hash_token(refresh_token), "last_active": iso(utcnow())})
    return AuthResponse(
        True,
        user=build_user_dict(user),
        session=build_session_dict(access_token, refresh_token),
        message=message,
    )

# --- Inscription / OTP ---

def signup(
    email: str,
    name: Optional[str],
    password: str,
    phone: Optional[str] = None,
    role: Optional[str] = None,
) -> AuthResponse:
    """Inscription en deux temps:
    - Refuse un email déjà associé à un compte
    - Stocke l’inscription en attente (mot de passe haché, OTP haché + expiration)
    - Une nouvelle inscription pour le même email remplace la précédente
    - Envoie l’OTP par email
    """
    email = normalize_email(email)
    if get_user_by_email(email):
        return failure("User with this email already exists", 409)
    try:
        validate_password_strength(password)
    except ValueError as e:
        return failure(str(e), 400)

    otp = generate_otp()
    try:
        upsert_pending_signup({
            "email": email,
            "name": (name or "").strip() or None,
            "phone": (phone or "").strip() or None,
            "password": hash_password(password),
            "role": normalize_role(role),
            "otp": hash_token(otp),
            "otp_expiry": iso(utcnow() + timedelta(minutes=OTP_EXPIRY_MINUTES)),
        })
    except Exception as e:
        return handle_exception("sign_up", e)

    try:
        send_otp_email(email, name, otp)
    except EmailDeliveryError:
        logger.exception("Envoi OTP impossible email=%s", email)
        return failure("Failed to send verification email", 502)

    return AuthResponse(True, message="Signup successful. Check your email for the verification code.")

def verify_otp(email: str, otp: str, ip_address: Optional[str] = None) -> AuthResponse:
    """Transition inscription en attente -> utilisateur vérifié.
    Les refus de verrouillage (429) sont levés par security_service.
    """
    email = normalize_email(email)
    security_service.check_otp_rate_limit(email, ip_address)

    pending = get_pending_signup(email)
    if not pending:
        return failure(NO_PENDING_SIGNUP, 404)

    expiry = parse_ts(pending.get("otp_expiry"))
    if not expiry or expiry < utcnow():
        delete_pending_signup(email)
        return failure("OTP expired", 400)

    if not _digest_matches(pending.get("otp"), (otp or "").strip()):
        security_service.record_failed_otp_attempt(email, ip_address)
        return failure("Invalid OTP", 400)

    if get_user_by_email(email):
        delete_pending_signup(email)
        return failure("User with this email already exists", 409)

    user = create_user({
        "email": email,
        "name": pending.get("name"),
        "phone": pending.get("phone"),
        "password": pending.get("password"),
        "role": normalize_role(pending.get("role")),
        "is_admin": False,
        "is_verified": True,
    })
    delete_pending_signup(email)
    security_service.clear_otp_attempts(email)
    logger.info("Compte vérifié user_id=%s", user.get("id"))
    return _issue_session(user, message="Email verified successfully")

def resend_otp(email: str) -> AuthResponse:
    email = normalize_email(email)
    pending = get_pending_signup(email)
    if not pending:
        return failure(NO_PENDING_SIGNUP, 404)

    otp = generate_otp()
    update_pending_signup(email, {
        "otp": hash_token(otp),
        "otp_expiry": iso(utcnow() + timedelta(minutes=OTP_EXPIRY_MINUTES)),
    })
    try:
        send_otp_email(email, pending.get("name"), otp)
    except EmailDeliveryError:
        logger.exception("Renvoi OTP impossible email=%s", email)
        return failure("Failed to send verification email", 502)
    return AuthResponse(True, message="A new verification code has been sent to your email")

# --- Connexion / jetons ---

def login(email: str, password: str) -> AuthResponse:
    """Connexion: même message pour email inconnu et mauvais mot de passe."""
    email = normalize_email(email)
    user = get_user_by_email(email)
    if not user or not verify_password(password, user.get("password")):
        return failure(INVALID_CREDENTIALS, 401)
    if user.get("is_banned"):
        return failure("Account is banned", 403)
    if not user.get("is_verified"):
        return failure("Email not verified", 403)
    return _issue_session(user)

def refresh(refresh_token: str) -> AuthResponse:
    """Rotation du refresh token.
    Un jeton valide mais différent de celui stocké signale une réutilisation:
    le jeton stocké est révoqué, forçant une reconnexion.
    """
    try:
        claims = decode_token(refresh_token, REFRESH)
    except TokenError as e:
        return failure(str(e), 401)

    user = get_user_by_id(claims["sub"])
    if not user:
        return failure(INVALID_REFRESH_TOKEN, 401)

    stored = user.get("refresh_token")
    if not _digest_matches(stored, refresh_token):
        if stored:
            logger.warning("Réutilisation de refresh token détectée user_id=%s", user["id"])
            update_user(user["id"], {"refresh_token": None})
        return failure(INVALID_REFRESH_TOKEN, 401)

    if user.get("is_banned"):
        update_user(user["id"], {"refresh_token": None})
        return failure("Account is banned", 403)
    return _issue_session(user)

def logout(user_id: str) -> AuthResponse:
    try:
        update_user(user_id, {"refresh_token": None})
        return AuthResponse(True, message="Logged out successfully")
    except Exception as e:
        return handle_exception("logout", e)

# --- Mot de passe oublié ---

def request_password_reset(email: str) -> AuthResponse:
    """Réponse identique que le compte existe ou non (pas d’énumération d’emails)."""
    email = normalize_email(email)
    user = get_user_by_email(email)
    if user and not user.get("is_banned"):
        token = secrets.token_urlsafe(32)
        try:
            update_user(user["id"], {
                "reset_token": hash_token(token),
                "reset_token_expiry": iso(utcnow() + timedelta(minutes=RESET_TOKEN_EXPIRY_MINUTES)),
            })
            send_password_reset_email(email, user.get("name"), token)
        except Exception:
            logger.exception("Demande de reset échouée user_id=%s", user.get("id"))
    return AuthResponse(True, message=RESET_REQUESTED_MESSAGE)

def reset_password(email: str, token: str, new_password: str) -> AuthResponse:
    try:
        validate_password_strength(new_password)
    except ValueError as e:
        return failure(str(e), 400)

    email = normalize_email(email)
    user = get_user_by_email(email)
    if not user or not _digest_matches(user.get("reset_token"), (token or "").strip()):
        return failure(INVALID_RESET_TOKEN, 400)
    expiry = parse_ts(user.get("reset_token_expiry"))
    if not expiry or expiry < utcnow():
        return failure(INVALID_RESET_TOKEN, 400)

    update_user(user["id"], {
        "password": hash_password(new_password),
        "reset_token": None,
        "reset_token_expiry": None,
        "refresh_token": None,
    })
    logger.info("Mot de passe réinitialisé user_id=%s", user["id"])
    return AuthResponse(True, message="Password has been reset successfully")

# --- OAuth Google ---

def build_google_authorization_url(role: Optional[str] = None, mode: Optional[str] = None) -> str:
    return oauth.build_authorization_url(normalize_role(role), mode)

def oauth_login(profile: Dict[str, Any], role: Optional[str] = None) -> AuthResponse:
    """Connexion/inscription par fournisseur externe:
    - google_id connu -> connexion
    - sinon email connu -> liaison du google_id au compte existant
    - sinon création d’un compte vérifié (mot de passe aléatoire inutilisable)
    """
    email = normalize_email(profile.get("email"))
    provider_id = profile.get("provider_id")
    if not email or not provider_id:
        return failure("User not found", 400)

    user = get_user_by_google_id(provider_id)
    if not user:
        user = get_user_by_email(email)
        if user:
            user = update_user(user["id"], {"google_id": provider_id, "is_verified": True}) or user
        else:
            user = create_user({
                "email": email,
                "name": profile.get("name"),
                "password": hash_password(secrets.token_urlsafe(32)),
                "role": normalize_role(role),
                "is_admin": False,
                "is_verified": True,
                "google_id": provider_id,
            })
            logger.info("Compte créé via Google user_id=%s", user.get("id"))

    if user.get("is_banned"):
        return failure("Account is banned", 403)
    return _issue_session(user)

def handle_google_callback(code: str, state: Optional[str] = None) -> AuthResponse:
    if not code:
        return failure("Missing authorization code", 400)
    try:
        profile = oauth.fetch_profile(oauth.exchange_code(code))
    except oauth.OAuthError as e:
        return failure(str(e), 401)
    return oauth_login(profile, oauth.decode_state(state)["role"])

# --- Intégration sécurité ---

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Résout l’utilisateur courant depuis un access token (401 invalide, 403 banni)."""
    try:
        claims = decode_token(access_token, ACCESS)
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    user = get_user_by_id(claims["sub"])
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if user.get("is_banned"):
        raise HTTPException(status_code=403, detail="Account is banned")
    return build_user_dict(user)
