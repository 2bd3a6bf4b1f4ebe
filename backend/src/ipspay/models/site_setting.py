"""Site setting model for runtime-editable pricing."""
from sqlalchemy import Column, String, Text

from ipspay.models.base import Base


class SiteSetting(Base):
    """Key/value setting editable by admins (prices, credit ratios)."""

    __tablename__ = "site_settings"

    key = Column(String(64), nullable=False, unique=True, index=True)
    value = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<SiteSetting(key={self.key}, value={self.value})>"
