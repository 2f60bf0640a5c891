from sqlalchemy import Column, String, DateTime, Text, text, func
from koperasi.db.base import Base


class SystemSetting(Base):
    """Key-value system settings. Complex values are stored as JSON strings."""
    __tablename__ = "system_setting"

    setting_key = Column(String(128), primary_key=True)  # e.g. "settings.profile", "settings.financial"
    setting_value = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"), onupdate=func.now())
