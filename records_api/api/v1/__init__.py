"""
API v1 Routers

api_router is mounted at the API base path (/api by default), fhir_router at
the FHIR base path (/fhir). Every FHIR and user-organization request is
audited.
"""

from fastapi import APIRouter, Depends

from records_api.services.audit import audit_request

from . import appointments, auth, organizations, patients, practitioners, users

api_router = APIRouter()

# Authentication (register/login are public, see core.middleware.PUBLIC_PATHS)
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# User organization context
api_router.include_router(
    users.router,
    prefix="/user",
    tags=["User Organizations"],
    dependencies=[Depends(audit_request)],
)

fhir_router = APIRouter(dependencies=[Depends(audit_request)])
fhir_router.include_router(organizations.router, tags=["Organizations"])
fhir_router.include_router(patients.router, tags=["Patients"])
fhir_router.include_router(practitioners.router, tags=["Practitioners"])
fhir_router.include_router(appointments.router, tags=["Appointments"])
