from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from farmshare.health.service import health_supabase_info
from farmshare.paystack.verification import health_check as paystack_health_check
from farmshare.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/supabase")
def health_supabase():
    return JSONResponse(health_supabase_info())

@router.get("/paystack")
def health_paystack():
    ok = paystack_health_check()
    return JSONResponse(status_code=200 if ok else 503, content={"ok": ok, "service": "paystack"})

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
