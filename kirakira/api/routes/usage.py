from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kirakira.core.security import AuthContext, get_auth_context
from kirakira.db.database import get_db
from kirakira.services.usage_service import usage_summary

router = APIRouter(
    prefix="/api/usage",
    tags=["usage"]
)


@router.get("")
def get_usage(auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Today's (KST) chat usage per model."""
    return {"usage": usage_summary(db, auth.user_id)}
