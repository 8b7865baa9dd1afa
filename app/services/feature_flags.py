"""Feature flags with per-restaurant overrides"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.models.feature_flag import FeatureFlag
from app.services.cache import TTLCache

logger = structlog.get_logger()

# Known flags
SERVICE_OVERLAP_CHECK = "service_overlap_check"


class FeatureFlagService:
    """Resolve flags: restaurant override first, then the global row, else off.

    Lookups are cached in the injected ``TTLCache``; call ``clear_cache`` after
    an admin changes a flag.
    """

    def __init__(self, db: AsyncSession, cache: TTLCache):
        self.db = db
        self.cache = cache

    async def is_enabled(self, key: str, restaurant_id: Optional[UUID] = None) -> bool:
        cache_key = (str(restaurant_id) if restaurant_id else "global", key)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            enabled = await self._lookup(key, restaurant_id)
        except SQLAlchemyError as e:
            # Flags gate optional behavior only; fall back to disabled
            logger.error("Error checking feature flag", key=key, error=str(e))
            return False

        self.cache.set(cache_key, enabled)
        return enabled

    async def _lookup(self, key: str, restaurant_id: Optional[UUID]) -> bool:
        if restaurant_id:
            result = await self.db.execute(
                select(FeatureFlag.is_enabled).where(
                    FeatureFlag.restaurant_id == restaurant_id,
                    FeatureFlag.key == key,
                )
            )
            row = result.first()
            if row is not None:
                return bool(row[0])

        result = await self.db.execute(
            select(FeatureFlag.is_enabled).where(
                FeatureFlag.restaurant_id.is_(None),
                FeatureFlag.key == key,
            )
        )
        row = result.first()
        return bool(row[0]) if row is not None else False

    def clear_cache(self) -> None:
        self.cache.clear()
