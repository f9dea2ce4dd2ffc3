"""
Player registration and the optional admin approval step. Registrations are
independent of queue membership.
"""

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import select, update

from party_bot.async_db_utils import (
    async_delete_where,
    async_query_first,
    async_session,
)
from party_bot.constants import INGAME_NAME_MAX_LENGTH, ApprovalStatus, Weapon
from party_bot.exceptions import (
    InvalidRegistration,
    RegistrationAlreadyReviewed,
    RegistrationNotFound,
)
from party_bot.models import GuildSettings, PlayerRegistration
from party_bot.utils import utc_now_naive

_log = logging.getLogger(__name__)


def parse_gear_score(value: str) -> int:
    """
    Gear score is entered either in thousands ("16.28", "16") or as a whole
    number ("16280"). Values with a decimal point or below 100 are read as
    thousands.
    """
    value = value.strip().replace(",", "")
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise InvalidRegistration(f"'{value}' is not a valid gear score.")
    if not number.is_finite() or number <= 0:
        raise InvalidRegistration("Gear score must be a positive number.")
    if "." in value or number < 100:
        number *= 1000
    return int(number.to_integral_value())


def format_gear_score(gear_score: int) -> str:
    """16280 -> 16.28"""
    return f"{gear_score / 1000:,.3f}".rstrip("0").rstrip(".")


def _validate(
    ingame_name: str,
    ingame_uid: str,
    gear_score: int,
    primary_weapon: Weapon | str,
    secondary_weapon: Weapon | str,
) -> tuple[str, str, Weapon, Weapon]:
    ingame_name = ingame_name.strip()
    ingame_uid = ingame_uid.strip()
    if not ingame_name:
        raise InvalidRegistration("In-game name cannot be empty.")
    if len(ingame_name) > INGAME_NAME_MAX_LENGTH:
        raise InvalidRegistration(
            f"In-game name must be at most {INGAME_NAME_MAX_LENGTH} characters."
        )
    if not ingame_uid:
        raise InvalidRegistration("In-game UID cannot be empty.")
    if gear_score <= 0:
        raise InvalidRegistration("Gear score must be a positive number.")
    try:
        primary = Weapon(primary_weapon)
        secondary = Weapon(secondary_weapon)
    except ValueError:
        raise InvalidRegistration("Invalid weapon selection.")
    return ingame_name, ingame_uid, primary, secondary


async def get_guild_settings(guild_id: int) -> GuildSettings | None:
    async with async_session() as session:
        return await session.get(GuildSettings, guild_id)


async def _update_guild_settings(guild_id: int, **values) -> GuildSettings:
    async with async_session() as session:
        settings = await session.get(GuildSettings, guild_id)
        if settings is None:
            settings = GuildSettings(guild_id=guild_id)
            session.add(settings)
        for key, value in values.items():
            setattr(settings, key, value)
        settings.updated_at = utc_now_naive()
        await session.commit()
        return settings


async def set_registration_channel(guild_id: int, channel_id: int) -> GuildSettings:
    _log.info(f"[set_registration_channel] Guild {guild_id} registers in {channel_id}")
    return await _update_guild_settings(guild_id, registration_channel_id=channel_id)


async def set_verification_settings(
    guild_id: int,
    review_channel_id: int,
    approved_role_id: int,
    approved_channel_id: int | None = None,
) -> GuildSettings:
    _log.info(f"[set_verification_settings] Verification enabled in guild {guild_id}")
    return await _update_guild_settings(
        guild_id,
        verification_enabled=True,
        review_channel_id=review_channel_id,
        approved_role_id=approved_role_id,
        approved_channel_id=approved_channel_id,
    )


async def disable_verification(guild_id: int) -> bool:
    """
    :returns: whether verification was enabled
    """
    settings = await get_guild_settings(guild_id)
    if settings is None or not settings.verification_enabled:
        return False
    await _update_guild_settings(guild_id, verification_enabled=False)
    _log.info(f"[disable_verification] Verification disabled in guild {guild_id}")
    return True


async def get_registration(guild_id: int, user_id: int) -> PlayerRegistration | None:
    async with async_session() as session:
        return await async_query_first(
            session,
            PlayerRegistration,
            PlayerRegistration.guild_id == guild_id,
            PlayerRegistration.user_id == user_id,
        )


async def get_registration_by_review_message(
    message_id: int,
) -> PlayerRegistration | None:
    async with async_session() as session:
        return await async_query_first(
            session,
            PlayerRegistration,
            PlayerRegistration.review_message_id == message_id,
        )


async def upsert_registration(
    guild_id: int,
    user_id: int,
    ingame_name: str,
    ingame_uid: str,
    gear_score: int,
    primary_weapon: Weapon | str,
    secondary_weapon: Weapon | str,
    arena_rank: str | None = None,
) -> tuple[PlayerRegistration, bool]:
    """
    Create or replace a player's profile. When the guild has verification
    enabled the profile waits for review, unless it was approved before.

    :returns: the registration and whether it was newly created
    :raises InvalidRegistration:
    """
    ingame_name, ingame_uid, primary, secondary = _validate(
        ingame_name, ingame_uid, gear_score, primary_weapon, secondary_weapon
    )
    settings = await get_guild_settings(guild_id)
    verification_enabled = settings is not None and settings.verification_enabled

    async with async_session() as session:
        registration = await async_query_first(
            session,
            PlayerRegistration,
            PlayerRegistration.guild_id == guild_id,
            PlayerRegistration.user_id == user_id,
        )
        created = registration is None
        already_approved = (
            registration is not None
            and registration.approval_status == ApprovalStatus.APPROVED.value
        )
        if not verification_enabled or already_approved:
            status = ApprovalStatus.APPROVED
        else:
            status = ApprovalStatus.PENDING

        if registration is None:
            registration = PlayerRegistration(
                guild_id=guild_id,
                user_id=user_id,
                ingame_name=ingame_name,
                ingame_uid=ingame_uid,
                gear_score=gear_score,
                primary_weapon=primary.value,
                secondary_weapon=secondary.value,
                arena_rank=arena_rank,
                approval_status=status.value,
            )
            session.add(registration)
        else:
            registration.ingame_name = ingame_name
            registration.ingame_uid = ingame_uid
            registration.gear_score = gear_score
            registration.primary_weapon = primary.value
            registration.secondary_weapon = secondary.value
            if arena_rank is not None:
                registration.arena_rank = arena_rank
            if status != ApprovalStatus(registration.approval_status):
                registration.approval_status = status.value
                registration.reviewed_by = None
                registration.reviewed_at = None
            registration.updated_at = utc_now_naive()
        await session.commit()

    _log.info(
        f"[upsert_registration] {'Created' if created else 'Updated'} registration for user {user_id} in guild {guild_id} ({status.value})"
    )
    return registration, created


async def set_review_message(registration_id: str, message_id: int | None) -> None:
    async with async_session() as session:
        await session.execute(
            update(PlayerRegistration)
            .where(PlayerRegistration.id == registration_id)
            .values(review_message_id=message_id)
            .execution_options(synchronize_session=False)
        )
        await session.commit()


async def update_stats(
    guild_id: int, user_id: int, gear_score: int, arena_rank: str | None = None
) -> PlayerRegistration:
    """:raises RegistrationNotFound:"""
    if gear_score <= 0:
        raise InvalidRegistration("Gear score must be a positive number.")
    async with async_session() as session:
        registration = await async_query_first(
            session,
            PlayerRegistration,
            PlayerRegistration.guild_id == guild_id,
            PlayerRegistration.user_id == user_id,
        )
        if registration is None:
            raise RegistrationNotFound()
        registration.gear_score = gear_score
        registration.arena_rank = arena_rank or None
        registration.updated_at = utc_now_naive()
        await session.commit()
        return registration


async def delete_registration(guild_id: int, user_id: int) -> bool:
    async with async_session() as session:
        deleted = await async_delete_where(
            session,
            PlayerRegistration,
            PlayerRegistration.guild_id == guild_id,
            PlayerRegistration.user_id == user_id,
        )
        await session.commit()
    if deleted:
        _log.info(f"[delete_registration] Deleted registration for user {user_id} in guild {guild_id}")
    return deleted > 0


async def review_registration(
    guild_id: int, user_id: int, approve: bool, reviewer_id: int
) -> PlayerRegistration:
    """
    Move a pending registration to approved or rejected. Only the first of two
    admins clicking at the same time wins.

    :raises RegistrationNotFound:
    :raises RegistrationAlreadyReviewed:
    """
    status = ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED
    async with async_session() as session:
        result = await session.execute(
            update(PlayerRegistration)
            .where(
                PlayerRegistration.guild_id == guild_id,
                PlayerRegistration.user_id == user_id,
                PlayerRegistration.approval_status == ApprovalStatus.PENDING.value,
            )
            .values(
                approval_status=status.value,
                reviewed_by=reviewer_id,
                reviewed_at=utc_now_naive(),
                review_message_id=None,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        registration = await session.scalar(
            select(PlayerRegistration).where(
                PlayerRegistration.guild_id == guild_id,
                PlayerRegistration.user_id == user_id,
            )
        )
    if registration is None:
        raise RegistrationNotFound()
    if not result.rowcount:
        raise RegistrationAlreadyReviewed()
    _log.info(
        f"[review_registration] Registration for user {user_id} in guild {guild_id} {status.value} by {reviewer_id}"
    )
    return registration
