from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Mapping, Optional, TypeAlias

from .datatypes import (
    Boolean,
    Buffer,
    DataType,
    LFloat,
    String,
    UnsignedByte,
    UnsignedVarInt,
)

log = logging.getLogger(__name__)


class RuleType(IntEnum):
    BOOL = 1
    INT = 2
    FLOAT = 3


RULE_DATATYPES: dict[RuleType, type[DataType]] = {
    RuleType.BOOL: Boolean,
    RuleType.INT: UnsignedVarInt,
    RuleType.FLOAT: LFloat,
}


@dataclass(frozen=True)
class RuleValue:
    type: RuleType
    value: bool | int | float

    @classmethod
    def of(cls, value: bool | int | float) -> RuleValue:
        # bool first, it is an int subclass
        if isinstance(value, bool):
            return cls(RuleType.BOOL, value)
        if isinstance(value, int):
            return cls(RuleType.INT, value)
        if isinstance(value, float):
            return cls(RuleType.FLOAT, value)
        raise TypeError(f"no game rule type for {type(value).__name__}")


class Gamerule(Enum):
    """Known rules, by the name the server uses for them"""

    COMMAND_BLOCK_OUTPUT = ("commandBlockOutput", RuleType.BOOL)
    DO_DAYLIGHT_CYCLE = ("doDaylightCycle", RuleType.BOOL)
    DO_ENTITY_DROPS = ("doEntityDrops", RuleType.BOOL)
    DO_FIRE_TICK = ("doFireTick", RuleType.BOOL)
    DO_MOB_LOOT = ("doMobLoot", RuleType.BOOL)
    DO_MOB_SPAWNING = ("doMobSpawning", RuleType.BOOL)
    DO_TILE_DROPS = ("doTileDrops", RuleType.BOOL)
    DO_WEATHER_CYCLE = ("doWeatherCycle", RuleType.BOOL)
    DROWNING_DAMAGE = ("drowningDamage", RuleType.BOOL)
    FALL_DAMAGE = ("fallDamage", RuleType.BOOL)
    FIRE_DAMAGE = ("fireDamage", RuleType.BOOL)
    KEEP_INVENTORY = ("keepInventory", RuleType.BOOL)
    MAX_COMMAND_CHAIN_LENGTH = ("maxCommandChainLength", RuleType.INT)
    MOB_GRIEFING = ("mobGriefing", RuleType.BOOL)
    NATURAL_REGENERATION = ("naturalRegeneration", RuleType.BOOL)
    PVP = ("pvp", RuleType.BOOL)
    SEND_COMMAND_FEEDBACK = ("sendCommandFeedback", RuleType.BOOL)
    SHOW_COORDINATES = ("showCoordinates", RuleType.BOOL)
    TNT_EXPLODES = ("tntexplodes", RuleType.BOOL)

    def __init__(self, nbt_name: str, value_type: RuleType):
        self.nbt_name = nbt_name
        self.value_type = value_type

    @classmethod
    def from_name(cls, name: str) -> Optional[Gamerule]:
        name = name.lower()
        return next((rule for rule in cls if rule.nbt_name.lower() == name), None)

    def make(self, value: bool | int | float) -> RuleValue:
        return RuleValue(self.value_type, value)


RuleTable: TypeAlias = Mapping[str | Gamerule, RuleValue | bool | int | float]


def _entry(key: str | Gamerule, value: RuleValue | bool | int | float) -> bytes:
    if isinstance(key, Gamerule):
        name = key.nbt_name
        if not isinstance(value, RuleValue):
            value = key.make(value)
    else:
        name = key
        if not isinstance(value, RuleValue):
            value = RuleValue.of(value)

    return (
        String(name.lower())
        + UnsignedByte(value.type)
        + RULE_DATATYPES[value.type](value.value)
    )


def read_game_rules(
    buff: Buffer, retain: bool = False
) -> Optional[dict[str, RuleValue]]:
    """
    Read a game rule table.

    A zero count reads as None, whether the sender had no table or an empty
    one. Every declared entry is consumed. Unless ``retain`` is set each
    value is read and then dropped, so a non-empty table comes back as an
    empty dict; that is what the upstream handler does and it is kept until
    someone knows whether it was meant to.
    """
    count = buff.unpack(UnsignedVarInt)
    if count == 0:
        return None

    rules: dict[str, RuleValue] = {}
    for _ in range(count):
        name = buff.unpack(String)
        rule_type = buff.unpack(UnsignedByte)

        if rule_type not in RULE_DATATYPES:
            log.warning("game rule %r has unrecognized type %d", name, rule_type)
            continue

        rule = RuleValue(RuleType(rule_type), buff.unpack(RULE_DATATYPES[rule_type]))
        if retain:
            rules[name.lower()] = rule

    return rules


class GameRules(DataType[Optional[Mapping], Optional[dict[str, RuleValue]]]):
    @staticmethod
    def pack(value: Optional[RuleTable]) -> bytes:
        if not value:
            return UnsignedVarInt(0)

        return UnsignedVarInt(len(value)) + b"".join(
            _entry(key, rule) for key, rule in value.items()
        )

    @staticmethod
    def unpack(buff: Buffer) -> Optional[dict[str, RuleValue]]:
        return read_game_rules(buff)
