import logging

from discord import Client, Colour, Interaction, TextStyle
from discord.ui import TextInput

from party_bot import registration as registrations
from party_bot.constants import INGAME_NAME_MAX_LENGTH, ApprovalStatus, Weapon
from party_bot.utils import send_interaction_message
from party_bot.views.approval import post_for_review
from party_bot.views.base import BaseModal

_log = logging.getLogger(__name__)


class RegistrationModal(BaseModal):
    """
    Second step of /register, after the weapons were picked as command options
    """

    def __init__(
        self,
        primary_weapon: Weapon,
        secondary_weapon: Weapon,
        existing=None,
    ):
        super().__init__(title="Player Registration", timeout=None)
        self.primary_weapon = primary_weapon
        self.secondary_weapon = secondary_weapon
        self.ingame_name: TextInput = TextInput(
            label="In-game name",
            style=TextStyle.short,
            required=True,
            max_length=INGAME_NAME_MAX_LENGTH,
            default=existing.ingame_name if existing else None,
        )
        self.ingame_uid: TextInput = TextInput(
            label="In-game UID",
            style=TextStyle.short,
            required=True,
            max_length=32,
            default=existing.ingame_uid if existing else None,
        )
        self.gear_score: TextInput = TextInput(
            label="Gear score",
            style=TextStyle.short,
            required=True,
            placeholder='E.g. "16.28" or "16280"',
            max_length=16,
        )
        self.add_item(self.ingame_name)
        self.add_item(self.ingame_uid)
        self.add_item(self.gear_score)

    async def on_submit(self, interaction: Interaction[Client]) -> None:
        gear_score = registrations.parse_gear_score(self.gear_score.value)
        registration, created = await registrations.upsert_registration(
            interaction.guild_id,
            interaction.user.id,
            self.ingame_name.value,
            self.ingame_uid.value,
            gear_score,
            self.primary_weapon,
            self.secondary_weapon,
        )
        if registration.approval_status == ApprovalStatus.PENDING.value:
            settings = await registrations.get_guild_settings(interaction.guild_id)
            if settings and await post_for_review(
                interaction.guild, interaction.user, registration, settings
            ):
                await send_interaction_message(
                    interaction,
                    "Your registration has been submitted and is waiting for an admin to review it.",
                    Colour.blue(),
                )
                return
            _log.warning(
                f"[RegistrationModal.on_submit] Could not post registration {registration.id} for review"
            )
        await send_interaction_message(
            interaction,
            "Registration complete!" if created else "Registration updated!",
            Colour.green(),
        )


class UpdateStatsModal(BaseModal):
    def __init__(self, current_rank: str | None = None):
        super().__init__(title="Update Stats", timeout=None)
        self.gear_score: TextInput = TextInput(
            label="Gear score",
            style=TextStyle.short,
            required=True,
            placeholder='E.g. "16.28" or "16280"',
            max_length=16,
        )
        self.arena_rank: TextInput = TextInput(
            label="Arena rank",
            style=TextStyle.short,
            required=False,
            max_length=32,
            default=current_rank,
        )
        self.add_item(self.gear_score)
        self.add_item(self.arena_rank)

    async def on_submit(self, interaction: Interaction[Client]) -> None:
        gear_score = registrations.parse_gear_score(self.gear_score.value)
        await registrations.update_stats(
            interaction.guild_id,
            interaction.user.id,
            gear_score,
            self.arena_rank.value.strip() or None,
        )
        await send_interaction_message(
            interaction, "Your stats have been updated!", Colour.green()
        )
