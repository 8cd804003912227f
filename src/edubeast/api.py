from fastapi import APIRouter

from edubeast.modules.auth import router as auth_router
from edubeast.modules.onboarding import router as onboarding_router
from edubeast.modules.tenants.router import router as tenants_router
from edubeast.modules.user_applications import admin_router as admin_applications_router
from edubeast.modules.user_applications import router as user_applications_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(
    user_applications_router, prefix="/user-applications", tags=["User Applications"]
)

api_router.include_router(
    admin_applications_router,
    prefix="/admin/user-applications",
    tags=["Admin - User Applications"],
)

api_router.include_router(onboarding_router, prefix="/onboarding", tags=["Onboarding"])

api_router.include_router(tenants_router, prefix="/tenants", tags=["Tenants"])
