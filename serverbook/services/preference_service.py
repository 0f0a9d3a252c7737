"""
Per-user preferences: a free-form key/value map created on first write.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook import messages
from serverbook.core.access import AccessChecker
from serverbook.core.config import Settings
from serverbook.core.exceptions import NotFoundError, ValidationWarning
from serverbook.core.logging import get_logger
from serverbook.models.preference import Preference
from serverbook.schemas.message import Member
from serverbook.services.catalog import Catalog

logger = get_logger(__name__)


class PreferenceKeys:
    BOOKING_REGION = "booking_region"
    SERVER_PASSWORD = "server_password"
    SERVER_RCON_PASSWORD = "server_rcon_password"
    SERVER_TF2_VALVE_SDR = "server_tf2_sdr_mode"
    SERVER_HOSTNAME = "server_hostname"
    SERVER_TV_NAME = "server_source_tv_name"
    SERVER_MAP = "server_map"
    SERVER_GIT_REPO = "server_git_repo"
    SERVER_GIT_KEY = "server_git_key"
    RCON_COMMAND_HISTORY = "rcon_command_history"


async def get_by_id(db: AsyncSession, user_id: str) -> Optional[Preference]:
    result = await db.execute(select(Preference).where(Preference.id == user_id))
    return result.scalar_one_or_none()


async def get_data(db: AsyncSession, user_id: str, key: str) -> Any:
    """Stored value, or None when the user or key has none."""
    preference = await get_by_id(db, user_id)
    if preference is None:
        return None
    return (preference.data or {}).get(key)


async def get_data_string(db: AsyncSession, user_id: str, key: str) -> Optional[str]:
    value = await get_data(db, user_id, key)
    return value if isinstance(value, str) else None


async def get_data_string_array(db: AsyncSession, user_id: str, key: str) -> Optional[list[str]]:
    value = await get_data(db, user_id, key)
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str)]


async def store_data(db: AsyncSession, user_id: str, key: str, value: Any) -> Preference:
    preference = await get_by_id(db, user_id)

    if preference is None:
        preference = Preference(id=user_id, data={})
        db.add(preference)

    # Reassign so the JSON column is flagged dirty
    preference.data = {**(preference.data or {}), key: value}
    await db.commit()
    await db.refresh(preference)

    logger.debug("preference_stored", user_id=user_id, key=key)
    return preference


# User-editable server settings: name -> (preference key, access setting name)
USER_SETTINGS = {
    "booking-region": (PreferenceKeys.BOOKING_REGION, None),
    "server-password": (PreferenceKeys.SERVER_PASSWORD, "ACCESS_SERVER_PASSWORD"),
    "server-rcon-password": (PreferenceKeys.SERVER_RCON_PASSWORD, "ACCESS_SERVER_RCON_PASSWORD"),
    "server-valve-sdr": (PreferenceKeys.SERVER_TF2_VALVE_SDR, "ACCESS_SERVER_VALVE_SDR"),
    "server-hostname": (PreferenceKeys.SERVER_HOSTNAME, "ACCESS_SERVER_HOSTNAME"),
    "server-tv-name": (PreferenceKeys.SERVER_TV_NAME, "ACCESS_SERVER_TV_NAME"),
}

PASSWORD_SETTINGS = {"server-password", "server-rcon-password"}


def clean_password(value: Optional[str]) -> str:
    value = value or ""
    if " " in value:
        raise ValidationWarning(messages.PASSWORD_HAS_SPACES, code="PASSWORD_HAS_SPACES")
    for char in ("'", '"', "$"):
        value = value.replace(char, "")
    return value


async def update_user_setting(
    db: AsyncSession,
    member: Member,
    setting: str,
    value: Any,
    catalog: Catalog,
    access: AccessChecker,
    settings: Settings,
) -> str:
    """
    Validate and store one user setting. Returns the confirmation text.

    Settings are stored even when the member lacks the role that makes them
    take effect; the confirmation says so.
    """
    if setting not in USER_SETTINGS:
        raise NotFoundError(messages.SETTING_UNKNOWN, code="SETTING_UNKNOWN")

    key, access_name = USER_SETTINGS[setting]
    spec = getattr(settings, access_name) if access_name else True

    if spec is False:
        raise ValidationWarning(messages.SETTING_DISABLED, code="SETTING_DISABLED")

    if setting == "booking-region":
        value = catalog.parse_region(str(value or ""))
        if value is None:
            raise ValidationWarning(messages.REGION_UNKNOWN, code="REGION_UNKNOWN")
    elif setting in PASSWORD_SETTINGS:
        value = clean_password(value)
    elif setting == "server-valve-sdr":
        value = value if isinstance(value, bool) else str(value).lower() in ("1", "true", "yes", "on")
    else:
        value = str(value or "")

    await store_data(db, member.id, key, value)

    if access_name and not access.has_access(member, spec):
        return messages.SETTING_NO_ACCESS
    return messages.SETTING_SAVED
