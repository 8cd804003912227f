"""
Tenants Router

Endpoints:
- GET /tenants/current - The school the caller belongs to
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.core.auth import CurrentUser, get_current_user
from edubeast.core.database import get_db
from edubeast.modules.tenants.repository import TenantRepository
from edubeast.modules.tenants.schemas import TenantResponse
from edubeast.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def _tenant_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "TENANT_NOT_FOUND",
            "message": "You are not linked to a school yet.",
        },
    )


@router.get(
    "/current",
    response_model=TenantResponse,
    summary="Get Current School",
    description="The tenant linked to the authenticated user, including feature flags.",
    responses={404: {"description": "Caller has no school yet"}},
)
async def get_current_tenant(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TenantResponse:
    user = await UserRepository.get_by_id(db, current_user.id)
    if user is None or user.tenant_id is None:
        raise _tenant_not_found()

    tenant = await TenantRepository.get_by_id(db, user.tenant_id)
    if tenant is None:
        logger.warning(f"User {user.id} linked to missing tenant {user.tenant_id}")
        raise _tenant_not_found()

    return TenantResponse.model_validate(tenant)
