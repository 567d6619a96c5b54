"""Key/value settings persisted for the GUI"""
import logging

from ghd_database.models import Setting
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH: int = 128


async def get_all_settings(db: AsyncSession) -> dict[str, str]:
    result = await db.exec(select(Setting).order_by(Setting.key))
    return {setting.key: setting.value for setting in result.all()}


async def get_setting(db: AsyncSession, key: str) -> str | None:
    setting = await db.get(Setting, key)
    return setting.value if setting else None


async def put_setting(db: AsyncSession, key: str, value: str) -> None:
    if not key or len(key) > MAX_KEY_LENGTH:
        raise ValueError(f"Setting key must be 1-{MAX_KEY_LENGTH} characters")

    setting = await db.get(Setting, key)
    if setting is None:
        setting = Setting(key=key, value=value)
    else:
        setting.value = value
    db.add(setting)
    await db.commit()
    logger.debug(f"Setting {key} updated")
