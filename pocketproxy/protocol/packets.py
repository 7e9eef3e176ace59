from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Self

from ..assets import AssetAssembler, RecipeRegistry
from ..errors import PacketDecodeError, ProtocolException
from ..settings import CodecSettings
from .datatypes import Buffer
from .gamerules import GameRules, RuleTable, RuleValue, read_game_rules
from .recipes import RecipeReader, RecipeRecord, Recipes

PACKET_CRAFTING_RECIPES = 0x34
PACKET_GAME_RULES_CHANGED = 0x48


class Packet(ABC):
    """
    One decoded game packet.

    The transport hands over a complete payload (id already stripped);
    ``deserialize`` walks it field by field and ``serialize`` writes the
    same layout back for packets the proxy re-emits.
    """

    id: int

    def __init__(self, settings: Optional[CodecSettings] = None):
        self.settings = settings or CodecSettings()

    @abstractmethod
    def serialize(self, buff: Buffer) -> None:
        pass

    @abstractmethod
    def deserialize(self, buff: Buffer) -> None:
        pass

    def estimate_length(self) -> int:
        """-1 when unknown"""
        return -1

    def ordering_channel(self) -> int:
        return 0

    def to_bytes(self) -> bytes:
        buff = Buffer()
        self.serialize(buff)
        return buff.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes, *args, **kwargs) -> Self:
        """Decode a payload; any codec failure becomes a PacketDecodeError"""
        packet = cls(*args, **kwargs)
        try:
            packet.deserialize(Buffer(data))
        except ProtocolException as e:
            raise PacketDecodeError(cls.id, e) from e
        return packet


class CraftingRecipesPacket(Packet):
    id = PACKET_CRAFTING_RECIPES

    def __init__(
        self,
        registry: Optional[RecipeRegistry] = None,
        recipes: Optional[list[RecipeRecord]] = None,
        settings: Optional[CodecSettings] = None,
    ):
        super().__init__(settings)
        self.registry = registry if registry is not None else AssetAssembler()
        self.recipes = recipes or []

    def serialize(self, buff: Buffer) -> None:
        buff.write(Recipes(self.recipes))

    def deserialize(self, buff: Buffer) -> None:
        reader = RecipeReader(self.registry, self.settings.nbt_allocation_limit)
        self.recipes = reader.drain(buff)


class GameRulesChangedPacket(Packet):
    id = PACKET_GAME_RULES_CHANGED

    def __init__(
        self,
        rules: Optional[RuleTable] = None,
        settings: Optional[CodecSettings] = None,
    ):
        super().__init__(settings)
        self.rules: Optional[RuleTable | dict[str, RuleValue]] = rules

    def serialize(self, buff: Buffer) -> None:
        buff.write(GameRules(self.rules))

    def deserialize(self, buff: Buffer) -> None:
        self.rules = read_game_rules(buff, self.settings.retain_game_rule_values)
