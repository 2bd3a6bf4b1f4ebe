"""Site settings administration endpoints."""
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.api.deps import get_current_user, get_db
from ipspay.auth.rbac import Role, require_roles
from ipspay.models.site_setting import SiteSetting
from ipspay.schemas.error import ErrorCode
from ipspay.schemas.setting import SiteSettingResponse, SiteSettingUpdate
from ipspay.services.settings_service import DEFAULTS, SettingsService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/{key}", response_model=SiteSettingResponse)
@require_roles(Role.ADMIN)
async def get_setting(
    key: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SiteSettingResponse:
    """
    Read a site setting (admin).

    Keys with no stored row report their built-in default.
    """
    result = await db.execute(select(SiteSetting).where(SiteSetting.key == key))
    setting = result.scalar_one_or_none()
    if setting is not None:
        return SiteSettingResponse.model_validate(setting)

    if key in DEFAULTS:
        return SiteSettingResponse(key=key, value=DEFAULTS[key], description="default")

    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": ErrorCode.SETTING_NOT_FOUND, "message": f"Setting {key} not found"},
    )


@router.put("/{key}", response_model=SiteSettingResponse)
@require_roles(Role.ADMIN)
async def update_setting(
    key: str,
    body: SiteSettingUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SiteSettingResponse:
    """Create or update a site setting; the cached value is dropped after the commit (admin)."""
    setting = await SettingsService(db).set(key, body.value, body.description)

    logger.info("site_setting_changed_by_admin", key=key, user_id=current_user.get("sub"))
    return SiteSettingResponse.model_validate(setting)
