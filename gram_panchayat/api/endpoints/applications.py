from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from gram_panchayat.api.deps import get_current_principal, get_lifecycle
from gram_panchayat.db.schemas import (
    ApplicationIn, ApplicationOut, BatchFailureOut, BatchStatusIn, BatchStatusOut,
    CancelIn, RemarksIn, StatusUpdateIn,
)
from gram_panchayat.services.lifecycle import ApplicationLifecycle, ApplicationStatus

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("", response_model=ApplicationOut, status_code=201)
def submit_application(body: ApplicationIn,
                       principal_id: str = Depends(get_current_principal),
                       lifecycle: ApplicationLifecycle = Depends(get_lifecycle)):
    return lifecycle.create(principal_id, body.service_id, body.reason)


@router.get("", response_model=List[ApplicationOut])
def list_applications(citizen_id: Optional[str] = None,
                      service_id: Optional[str] = None,
                      status: Optional[List[ApplicationStatus]] = Query(default=None),
                      q: Optional[str] = None,
                      principal_id: str = Depends(get_current_principal),
                      lifecycle: ApplicationLifecycle = Depends(get_lifecycle)):
    if q:
        apps = lifecycle.search_applications(q, actor_id=principal_id, status=status)
        return [a for a in apps
                if (not citizen_id or a.citizen_id == citizen_id) and (not service_id or a.service_id == service_id)]
    return lifecycle.list_applications(citizen_id=citizen_id, service_id=service_id, status=status,
                                       actor_id=principal_id)


# registered before /{application_id} routes so the literal path wins
@router.post("/batch-status", response_model=BatchStatusOut)
def batch_status(body: BatchStatusIn,
                 principal_id: str = Depends(get_current_principal),
                 lifecycle: ApplicationLifecycle = Depends(get_lifecycle)):
    result = lifecycle.batch_transition(body.application_ids, principal_id, body.status, body.remarks)
    return BatchStatusOut(
        succeeded=result.succeeded,
        failed=[BatchFailureOut(id=f.id, code=f.error.code, message=f.error.message) for f in result.failed],
    )


@router.get("/{application_id}", response_model=ApplicationOut)
def get_application(application_id: str,
                    principal_id: str = Depends(get_current_principal),
                    lifecycle: ApplicationLifecycle = Depends(get_lifecycle)):
    return lifecycle.get_application(application_id, actor_id=principal_id)


@router.patch("/{application_id}/status", response_model=ApplicationOut)
def update_status(application_id: str, body: StatusUpdateIn,
                  principal_id: str = Depends(get_current_principal),
                  lifecycle: ApplicationLifecycle = Depends(get_lifecycle)):
    return lifecycle.transition(application_id, principal_id, body.status, body.remarks)


@router.patch("/{application_id}/remarks", response_model=ApplicationOut)
def update_remarks(application_id: str, body: RemarksIn,
                   principal_id: str = Depends(get_current_principal),
                   lifecycle: ApplicationLifecycle = Depends(get_lifecycle)):
    return lifecycle.update_remarks(application_id, principal_id, body.remarks)


@router.post("/{application_id}/cancel", response_model=ApplicationOut)
def cancel_application(application_id: str, body: Optional[CancelIn] = None,
                       principal_id: str = Depends(get_current_principal),
                       lifecycle: ApplicationLifecycle = Depends(get_lifecycle)):
    return lifecycle.cancel(application_id, principal_id, body.remarks if body else None)
