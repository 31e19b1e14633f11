from fastapi import APIRouter, HTTPException, Depends, Response, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, EmailStr, Field, field_validator
from starlette.status import HTTP_303_SEE_OTHER
from typing import Optional, Dict, Any
from urllib.parse import urlencode

from farmshare.config import FRONTEND_BASE_URL
from farmshare.utils.validators import validate_password_strength
from farmshare.utils.security import require_user, set_session_cookie, clear_session_cookie
from farmshare.auth.models import AuthResponse
from farmshare.auth.oauth import OAuthError
from .service import (
    signup as svc_signup,
    verify_otp as svc_verify_otp,
    resend_otp as svc_resend_otp,
    login as svc_login,
    refresh as svc_refresh,
    logout as svc_logout,
    request_password_reset as svc_request_reset,
    reset_password as svc_reset_password,
    build_google_authorization_url,
    handle_google_callback,
)

def optional_rate_limit(times: int, seconds: int):
    from farmshare.utils.rate_limit import optional_rate_limit as _rl
    return _rl(times, seconds)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth API"])

class SignupRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=120)
    password: str = Field(min_length=8, max_length=72)
    phone: Optional[str] = Field(default=None, max_length=32)
    role: Optional[str] = None
    @field_validator("password")
    def password_strength(cls, v: str) -> str:
        return validate_password_strength(v)

class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(pattern=r"^\d{6}$")

class EmailRequest(BaseModel):
    email: EmailStr

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(max_length=128)

class RefreshRequest(BaseModel):
    refresh_token: str

class ResetPasswordRequest(BaseModel):
    email: EmailStr
    token: str
    new_password: str = Field(min_length=8, max_length=72)
    @field_validator("new_password")
    def password_strength(cls, v: str) -> str:
        return validate_password_strength(v)

def _raise_on_failure(result: AuthResponse) -> None:
    if not result.success:
        raise HTTPException(status_code=result.status_code, detail=result.error or "Authentication error")

def _session_response(result: AuthResponse, response: Response) -> Dict[str, Any]:
    _raise_on_failure(result)
    if result.access_token:
        set_session_cookie(response, result.access_token)
    return result.to_dict()

@router.post("/signup", status_code=201, dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_signup(req: SignupRequest):
    """Inscription: crée une inscription en attente et envoie un OTP par email (pas de session à ce stade)."""
    result = svc_signup(req.email, req.name, req.password, phone=req.phone, role=req.role)
    _raise_on_failure(result)
    return {"message": result.message, "email": str(req.email).lower()}

@router.post("/verify-otp", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def api_verify_otp(req: VerifyOtpRequest, request: Request, response: Response):
    """Vérifie l’OTP, crée le compte et ouvre la session (cookie + JSON)."""
    ip = request.client.host if request.client else None
    return _session_response(svc_verify_otp(req.email, req.otp, ip), response)

@router.post("/resend-otp", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
def api_resend_otp(req: EmailRequest):
    result = svc_resend_otp(req.email)
    _raise_on_failure(result)
    return {"message": result.message}

@router.post("/login", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_login(req: LoginRequest, response: Response):
    """Point d'entrée de connexion (API JSON).
    - Pose le cookie de session HTTPOnly et retourne {access_token, refresh_token, token_type, user}.
    """
    return _session_response(svc_login(req.email, req.password), response)

@router.post("/refresh", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def api_refresh(req: RefreshRequest, response: Response):
    """Rotation: l’ancien refresh token devient invalide dès l’émission du nouveau."""
    return _session_response(svc_refresh(req.refresh_token), response)

@router.post("/logout")
def api_logout(response: Response, user: Dict[str, Any] = Depends(require_user)):
    result = svc_logout(user["id"])
    _raise_on_failure(result)
    clear_session_cookie(response)
    return {"message": result.message}

@router.get("/me")
def api_me(user: Dict[str, Any] = Depends(require_user)):
    return user

@router.post("/forgot-password", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
def api_forgot_password(req: EmailRequest):
    return {"message": svc_request_reset(req.email).message}

@router.post("/reset-password", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_reset_password(req: ResetPasswordRequest):
    result = svc_reset_password(req.email, req.token, req.new_password)
    _raise_on_failure(result)
    return {"message": result.message}

# --- OAuth Google ---

@router.get("/google")
def api_google_login(role: Optional[str] = None, mode: Optional[str] = None):
    """Redirige vers l’écran de consentement Google; role/mode sont renvoyés via state."""
    try:
        url = build_google_authorization_url(role, mode)
    except OAuthError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return RedirectResponse(url=url, status_code=HTTP_303_SEE_OTHER)

@router.get("/google/callback")
def api_google_callback(code: Optional[str] = None, state: Optional[str] = None):
    """Termine le flux OAuth et redirige le front avec les jetons (ou un message d’erreur)."""
    if not FRONTEND_BASE_URL:
        raise HTTPException(status_code=500, detail="FRONTEND_BASE_URL is not defined")
    result = handle_google_callback(code or "", state)
    base = f"{FRONTEND_BASE_URL.rstrip('/')}/oauth"
    if not result.success:
        return RedirectResponse(url=f"{base}?{urlencode({'error': result.error})}", status_code=HTTP_303_SEE_OTHER)
    params = {"token": result.access_token, "refresh_token": result.refresh_token}
    r = RedirectResponse(url=f"{base}?{urlencode(params)}", status_code=HTTP_303_SEE_OTHER)
    set_session_cookie(r, result.access_token)
    return r
