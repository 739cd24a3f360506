"""Specialty listing endpoint."""

from fastapi import APIRouter

from wardtrack.api.dependencies import ServiceDep

router = APIRouter(tags=["specialties"])


@router.get("/specialties", response_model=list[str])
def list_specialties(service: ServiceDep) -> list[str]:
    """Distinct specialties currently present among patients."""
    return service.list_specialties()
