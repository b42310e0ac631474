from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth.utils import require_admin
from db.database import get_db
from services.reconcile_service import reconcile
from services.trackables import TrackableKind

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/reconcile/{kind}")
def run_reconcile(kind: TrackableKind, db: Session = Depends(get_db)):
    return reconcile(db, kind).to_dict()
