from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from models import Media

logger = logging.getLogger(__name__)


class MediaService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def update_media_used_status(self, media_ids: Iterable[str | None], used: bool) -> int:
        """Flag uploaded files as referenced (or released). Returns the number of rows touched."""
        ids = sorted({m for m in media_ids if m})
        if not ids:
            return 0
        result = await self.session.execute(
            update(Media)
            .where(Media.id.in_(ids))
            .values(is_used=used)
            .execution_options(synchronize_session=False)
        )
        logger.debug("Marked %d media rows is_used=%s", result.rowcount, used)
        return result.rowcount

    async def replace_references(
        self, previous: Iterable[str | None], current: Iterable[str | None]
    ) -> None:
        """Flag the current file ids as used and release the previous ones no longer referenced."""
        keep = {m for m in current if m}
        await self.update_media_used_status(keep, True)
        await self.update_media_used_status((m for m in previous if m not in keep), False)
