"""Staff settings endpoints"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import StaffContext, get_current_staff
from ...database import get_db
from .repository import SettingsRepository
from .schemas import SettingResponse, SettingsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/settings", tags=["Settings"])


@router.get("", response_model=list[SettingResponse])
async def list_settings(
    staff: StaffContext = Depends(get_current_staff), db: Session = Depends(get_db)
):
    return SettingsRepository.list_settings(db, staff.tenant_id)


@router.put("", response_model=list[SettingResponse])
async def update_settings(
    data: SettingsUpdate,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    SettingsRepository.upsert_many(db, staff.tenant_id, data.settings)
    logger.info(f"✅ Updated {len(data.settings)} settings for tenant {staff.tenant_id}")
    return SettingsRepository.list_settings(db, staff.tenant_id)
