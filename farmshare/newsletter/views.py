"""Endpoints newsletter.
- Publics (rate-limités): /subscribe, /unsubscribe
- Admin: /subscribers, /stats, /subscriber/{email}, /send
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from typing import Dict, Any, List, Optional

from farmshare.utils.security import require_admin
from farmshare.utils.rate_limit import optional_rate_limit
from . import service as newsletter_service

router = APIRouter(prefix="/api/v1/newsletter", tags=["Newsletter"])

class SubscribeRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=120)
    source: Optional[str] = Field(default=None, max_length=50)
    tags: Optional[List[str]] = None

class UnsubscribeRequest(BaseModel):
    email: EmailStr

class SendNewsletterRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    html_content: str = Field(min_length=1)
    text_content: Optional[str] = None
    target_tags: Optional[List[str]] = None
    test_mode: bool = False

@router.post("/subscribe", status_code=201, dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_subscribe(req: SubscribeRequest):
    return newsletter_service.subscribe(req.email, req.name, req.source, req.tags)

@router.post("/unsubscribe", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_unsubscribe(req: UnsubscribeRequest):
    return newsletter_service.unsubscribe(req.email)

@router.get("/subscribers")
def api_list_subscribers(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    active_only: bool = True,
    admin: Dict[str, Any] = Depends(require_admin),
):
    return newsletter_service.list_subscribers(page, limit, active_only)

@router.get("/stats")
def api_stats(admin: Dict[str, Any] = Depends(require_admin)):
    return newsletter_service.get_stats()

@router.delete("/subscriber/{email}")
def api_delete_subscriber(email: str, admin: Dict[str, Any] = Depends(require_admin)):
    return newsletter_service.delete_subscriber(email)

@router.post("/send")
def api_send_newsletter(req: SendNewsletterRequest, admin: Dict[str, Any] = Depends(require_admin)):
    """Envoi synchrone par lots; test_mode=true retourne un aperçu sans rien envoyer."""
    return newsletter_service.send_newsletter(
        req.subject,
        req.html_content,
        text_content=req.text_content,
        target_tags=req.target_tags,
        test_mode=req.test_mode,
    )
