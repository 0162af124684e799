from datetime import datetime

from fastapi import APIRouter, Depends

from campusvote.dependencies import get_current_principal, get_now, get_storage, require_admin
from campusvote.models.election_model import AdminDashboard, StudentDashboard
from campusvote.security import Principal
from campusvote.services import elections as election_service
from campusvote.storage_mongo import MongoStorage

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/admin", response_model=AdminDashboard)
def admin_dashboard(
    storage: MongoStorage = Depends(get_storage),
    now: datetime = Depends(get_now),
    _admin: Principal = Depends(require_admin),
):
    return election_service.admin_dashboard(storage, now=now)


@router.get("/student", response_model=StudentDashboard)
def student_dashboard(
    storage: MongoStorage = Depends(get_storage),
    now: datetime = Depends(get_now),
    principal: Principal = Depends(get_current_principal),
):
    return election_service.student_dashboard(storage, principal, now=now)
