from fastapi import APIRouter, Depends
from typing import Dict, Any
from farmshare.utils.security import require_admin
from .tasks import run_maintenance

router = APIRouter(prefix="/api/v1/admin/security", tags=["Admin Security"])

@router.post("/maintenance")
def admin_run_maintenance(admin: Dict[str, Any] = Depends(require_admin)):
    """Déclenche une passe de nettoyage immédiate (même traitement que la tâche périodique)."""
    return {"results": run_maintenance()}
