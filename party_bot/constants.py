"""
Static tables the bot is configured with: queue types, player roles, weapons
and user facing messages. Loaded once at import and never mutated.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType


class QueueType(str, Enum):
    SWORD_TRIAL = "sword_trial"
    HERO_REALM = "hero_realm"
    GUILD_WAR = "guild_war"


class QueueStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class PlayerRole(str, Enum):
    TANK = "tank"
    HEALER = "healer"
    DPS = "dps"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class QueueTypeConfig:
    capacity: int
    display_name: str
    emoji: str
    colour: int


@dataclass(frozen=True)
class RoleConfig:
    display_name: str
    emoji: str


@dataclass(frozen=True)
class WeaponConfig:
    display_name: str
    emoji: str


QUEUE_CONFIGS: MappingProxyType[QueueType, QueueTypeConfig] = MappingProxyType(
    {
        QueueType.SWORD_TRIAL: QueueTypeConfig(5, "Sword Trial", "🗡️", 0x3498DB),
        QueueType.HERO_REALM: QueueTypeConfig(10, "Hero Realm", "🏰", 0xE74C3C),
        QueueType.GUILD_WAR: QueueTypeConfig(30, "Guild War", "⚔️", 0xF1C40F),
    }
)

ROLE_CONFIGS: MappingProxyType[PlayerRole, RoleConfig] = MappingProxyType(
    {
        PlayerRole.TANK: RoleConfig("Tank", "🛡️"),
        PlayerRole.HEALER: RoleConfig("Healer", "💚"),
        PlayerRole.DPS: RoleConfig("DPS", "⚔️"),
    }
)


class Weapon(str, Enum):
    STRATEGIC_SWORD = "strategic_sword"
    NAMELESS_SWORD = "nameless_sword"
    STORMBREAKER_SPEAR = "stormbreaker_spear"
    HEAVENQUAKER_SPEAR = "heavenquaker_spear"
    NAMELESS_SPEAR = "nameless_spear"
    INFERNAL_TWINBLADES = "infernal_twinblades"
    MO_DAO = "mo_dao"
    PANACEA_FAN = "panacea_fan"
    INKWELL_FAN = "inkwell_fan"
    SOULSHADE_UMBRELLA = "soulshade_umbrella"
    VERNAL_UMBRELLA = "vernal_umbrella"
    MORTAL_ROPE_DART = "mortal_rope_dart"


WEAPON_CONFIGS: MappingProxyType[Weapon, WeaponConfig] = MappingProxyType(
    {
        Weapon.STRATEGIC_SWORD: WeaponConfig("Strategic Sword", "⚔️"),
        Weapon.NAMELESS_SWORD: WeaponConfig("Nameless Sword", "⚔️"),
        Weapon.STORMBREAKER_SPEAR: WeaponConfig("Stormbreaker Spear", "🔱"),
        Weapon.HEAVENQUAKER_SPEAR: WeaponConfig("Heavenquaker Spear", "🔱"),
        Weapon.NAMELESS_SPEAR: WeaponConfig("Nameless Spear", "🔱"),
        Weapon.INFERNAL_TWINBLADES: WeaponConfig("Infernal Twinblades", "🗡️"),
        Weapon.MO_DAO: WeaponConfig("Mo Dao", "⚔️"),
        Weapon.PANACEA_FAN: WeaponConfig("Panacea Fan", "🪭"),
        Weapon.INKWELL_FAN: WeaponConfig("Inkwell Fan", "🪭"),
        Weapon.SOULSHADE_UMBRELLA: WeaponConfig("Soulshade Umbrella", "☂️"),
        Weapon.VERNAL_UMBRELLA: WeaponConfig("Vernal Umbrella", "☂️"),
        Weapon.MORTAL_ROPE_DART: WeaponConfig("Mortal Rope Dart", "🪢"),
    }
)

EMPTY_SLOT_EMOJI = "⬜"
INGAME_NAME_MAX_LENGTH = 50

# Keyed by QueueError.code / RegistrationError.code
ERROR_MESSAGES: MappingProxyType[str, str] = MappingProxyType(
    {
        "QUEUE_NOT_FOUND": "This queue no longer exists.",
        "QUEUE_FULL": "This queue is full! Please wait for the next one.",
        "QUEUE_CLOSED": "This queue is closed.",
        "PLAYER_IN_ANOTHER_QUEUE": "You are already in another queue! Leave that queue first.",
        "PLAYER_NOT_IN_QUEUE": "You are not in this queue.",
        "QUEUE_ALREADY_EXISTS": "A queue of this type is already open in this server.",
        "QUEUE_HANDLE_EXISTS": "A queue is already attached to that message.",
        "PANEL_ALREADY_EXISTS": "A panel for this queue type already exists in this server.",
        "PANEL_NOT_FOUND": "There is no panel for this queue type in this server.",
        "REGISTRATION_NOT_FOUND": "No registration found.",
        "REGISTRATION_ALREADY_REVIEWED": "This registration has already been processed.",
        "INVALID_REGISTRATION": "That registration is not valid.",
    }
)

# Keyed by the template_key handed to the notifier
NOTIFICATION_TEMPLATES: MappingProxyType[str, str] = MappingProxyType(
    {
        "queue_full": "🎉 **{queue_name}** queue is full!\n\n{mentions}\n\nThe queue is ready to start!",
        "queue_expired": "⏰ **{queue_name}** queue has expired and is now closed.\n\n{mentions}",
    }
)
