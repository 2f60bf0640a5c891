from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.exceptions import NotFound, StorageFailure
from koperasi.models.system import SystemSetting
from pydantic import BaseModel
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class SystemSettingsResponse(BaseModel):
    settings: Dict[str, Optional[str]]


class SystemSettingsUpdate(BaseModel):
    settings: Dict[str, str]


class SystemSettingResponse(BaseModel):
    key: str
    value: Optional[str] = None


@router.get("/settings", response_model=SystemSettingsResponse)
def get_settings(db: Session = Depends(get_db)):
    """Get all system settings as a key-value map."""
    settings = db.query(SystemSetting).order_by(SystemSetting.setting_key).all()
    settings_dict = {s.setting_key: s.setting_value for s in settings}
    return {"settings": settings_dict}


@router.get("/settings/{key}", response_model=SystemSettingResponse)
def get_setting(key: str, db: Session = Depends(get_db)):
    """Get a single setting."""
    setting = db.query(SystemSetting).filter(SystemSetting.setting_key == key).first()
    if not setting:
        raise NotFound(f"Setting '{key}' not found")
    return {"key": setting.setting_key, "value": setting.setting_value}


class SystemSettingValue(BaseModel):
    value: str


@router.put("/settings/{key}", response_model=SystemSettingResponse)
def put_setting(key: str, body: SystemSettingValue, db: Session = Depends(get_db)):
    """Create or update a single setting."""
    setting = db.query(SystemSetting).filter(SystemSetting.setting_key == key).first()
    if setting:
        setting.setting_value = body.value
    else:
        setting = SystemSetting(setting_key=key, setting_value=body.value)
        db.add(setting)

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update setting {key}: {e}")
        raise StorageFailure("Could not update setting") from e
    return {"key": key, "value": body.value}


@router.put("/settings")
def update_settings(settings_update: SystemSettingsUpdate, db: Session = Depends(get_db)):
    """Create or update system settings."""
    for key, value in settings_update.settings.items():
        setting = db.query(SystemSetting).filter(
            SystemSetting.setting_key == key
        ).first()

        if setting:
            setting.setting_value = value
        else:
            setting = SystemSetting(
                setting_key=key,
                setting_value=value
            )
            db.add(setting)

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update settings: {e}")
        raise StorageFailure("Could not update settings") from e
    return {"message": "Settings updated successfully", "updated": sorted(settings_update.settings)}
