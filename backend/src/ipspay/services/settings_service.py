"""Site settings with a read-through cache.

Reads go cache → database → built-in default. Cached entries live for
``settings_cache_ttl_seconds``. A write commits the database change and only
then drops the cached entry; a read that lands before the commit may cache
the old value, and the post-commit drop evicts it.
"""
from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.cache import RedisCache, cache as default_cache, cache_key
from ipspay.config import settings
from ipspay.models.site_setting import SiteSetting

logger = structlog.get_logger(__name__)

CONTACT_REVEAL_PRICE = "CONTACT_REVEAL_PRICE"
PRIORITY_LISTING_PRICE = "PRIORITY_LISTING_PRICE"
URGENT_LISTING_PRICE = "URGENT_LISTING_PRICE"
TOPUP_RSD_PER_CREDIT = "TOPUP_RSD_PER_CREDIT"

# Used when the key has no row yet
DEFAULTS = {
    CONTACT_REVEAL_PRICE: "30",
    PRIORITY_LISTING_PRICE: "150",
    URGENT_LISTING_PRICE: "300",
    TOPUP_RSD_PER_CREDIT: "20",
}


class SettingsService:
    """Service for reading and writing site settings."""

    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[RedisCache] = None,
        ttl_seconds: Optional[int] = None,
    ):
        """Initialize settings service."""
        self.db = db
        self.cache = cache or default_cache
        self.ttl_seconds = ttl_seconds or settings.settings_cache_ttl_seconds

    async def get(self, key: str) -> Optional[str]:
        """
        Get a raw setting value.

        Args:
            key: Setting key

        Returns:
            Stored value, the built-in default, or None
        """
        cached = await self.cache.get(cache_key("setting", key))
        if isinstance(cached, dict) and "value" in cached:
            return cached["value"]

        result = await self.db.execute(select(SiteSetting).where(SiteSetting.key == key))
        setting = result.scalar_one_or_none()
        if setting is None:
            return DEFAULTS.get(key)

        await self.cache.set(cache_key("setting", key), {"value": setting.value}, ttl=self.ttl_seconds)
        return setting.value

    async def get_int(self, key: str, default: int = 0) -> int:
        """Setting parsed as an integer; unparsable values yield the default."""
        value = await self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("setting_not_an_integer", key=key, value=value)
            return default

    async def get_bool(self, key: str, default: bool = False) -> bool:
        """Setting parsed as a boolean ("true"/"1")."""
        value = await self.get(key)
        if value is None:
            return default
        return value.strip().lower() in ("true", "1")

    async def set(self, key: str, value: str, description: Optional[str] = None) -> SiteSetting:
        """
        Create or update a setting, commit, then invalidate its cache entry.

        Commits the session: the invalidation must follow the commit or a
        concurrent reader could re-cache the old row for a full TTL.

        Args:
            key: Setting key
            value: New value
            description: Optional admin-facing description

        Returns:
            The stored setting
        """
        result = await self.db.execute(select(SiteSetting).where(SiteSetting.key == key))
        setting = result.scalar_one_or_none()

        if setting is None:
            setting = SiteSetting(key=key, value=value, description=description)
            self.db.add(setting)
        else:
            setting.value = value
            if description is not None:
                setting.description = description

        await self.db.commit()
        await self.cache.delete(cache_key("setting", key))

        logger.info("site_setting_updated", key=key, value=value)
        return setting

    async def list_all(self) -> List[SiteSetting]:
        """All stored settings ordered by key."""
        result = await self.db.execute(select(SiteSetting).order_by(SiteSetting.key))
        return list(result.scalars().all())

    async def clear_cache(self) -> int:
        """Drop every cached setting."""
        return await self.cache.invalidate_pattern(cache_key("setting", "*"))

    async def contact_reveal_price(self) -> int:
        return await self.get_int(CONTACT_REVEAL_PRICE, int(DEFAULTS[CONTACT_REVEAL_PRICE]))

    async def priority_listing_price(self) -> int:
        return await self.get_int(PRIORITY_LISTING_PRICE, int(DEFAULTS[PRIORITY_LISTING_PRICE]))

    async def urgent_listing_price(self) -> int:
        return await self.get_int(URGENT_LISTING_PRICE, int(DEFAULTS[URGENT_LISTING_PRICE]))

    async def rsd_per_credit(self) -> int:
        return await self.get_int(TOPUP_RSD_PER_CREDIT, int(DEFAULTS[TOPUP_RSD_PER_CREDIT]))
