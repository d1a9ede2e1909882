from typing import List, Optional
from fastapi import APIRouter, Depends, Response, status
from gram_panchayat.api.deps import get_catalog, get_current_principal
from gram_panchayat.db.schemas import ServiceIn, ServiceOut, ServiceUpdateIn
from gram_panchayat.services.catalog import ServiceCatalog

router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=List[ServiceOut])
def list_services(category: Optional[str] = None, active: Optional[bool] = True, q: Optional[str] = None,
                  catalog: ServiceCatalog = Depends(get_catalog)):
    if q:
        services = catalog.search_services(q, active=active)
        return [s for s in services if not category or s.category == category]
    return catalog.list_services(category=category, active=active)


@router.get("/{service_id}", response_model=ServiceOut)
def get_service(service_id: str, catalog: ServiceCatalog = Depends(get_catalog)):
    return catalog.get_service(service_id)


@router.post("", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
def create_service(body: ServiceIn,
                   principal_id: str = Depends(get_current_principal),
                   catalog: ServiceCatalog = Depends(get_catalog)):
    return catalog.create_service(principal_id, body.model_dump())


@router.patch("/{service_id}", response_model=ServiceOut)
def update_service(service_id: str, body: ServiceUpdateIn,
                   principal_id: str = Depends(get_current_principal),
                   catalog: ServiceCatalog = Depends(get_catalog)):
    return catalog.update_service(principal_id, service_id, body.model_dump(exclude_unset=True))


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(service_id: str,
                   principal_id: str = Depends(get_current_principal),
                   catalog: ServiceCatalog = Depends(get_catalog)):
    catalog.delete_service(principal_id, service_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
