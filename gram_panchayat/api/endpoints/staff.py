from fastapi import APIRouter, Depends
from gram_panchayat.api.deps import get_current_principal, get_reports
from gram_panchayat.db.schemas import StaffStatsOut
from gram_panchayat.services.reports import ReportService

router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("/stats", response_model=StaffStatsOut)
def staff_stats(principal_id: str = Depends(get_current_principal),
                reports: ReportService = Depends(get_reports)):
    return reports.staff_stats(principal_id)
