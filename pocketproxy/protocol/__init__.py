from .datatypes import (
    UUID,
    BlockPos,
    BlockPosition,
    Boolean,
    Buffer,
    Byte,
    DataType,
    LFloat,
    LInt,
    LLong,
    LShort,
    SignedVarInt,
    SignedVarLong,
    String,
    UnsignedByte,
    UnsignedVarInt,
    UnsignedVarLong,
    Vec3,
    Vector,
)
from .gamerules import Gamerule, GameRules, RuleType, RuleValue, read_game_rules
from .items import ItemStack, Slot, Slots, read_item_stack, read_item_stacks
from .packets import CraftingRecipesPacket, GameRulesChangedPacket, Packet
from .recipes import RecipeKind, RecipeReader, RecipeRecord, Recipes, UnknownKind

__all__ = [
    "UUID",
    "BlockPos",
    "BlockPosition",
    "Boolean",
    "Buffer",
    "Byte",
    "CraftingRecipesPacket",
    "DataType",
    "GameRules",
    "GameRulesChangedPacket",
    "Gamerule",
    "ItemStack",
    "LFloat",
    "LInt",
    "LLong",
    "LShort",
    "Packet",
    "RecipeKind",
    "RecipeReader",
    "RecipeRecord",
    "Recipes",
    "RuleType",
    "RuleValue",
    "SignedVarInt",
    "SignedVarLong",
    "Slot",
    "Slots",
    "String",
    "UnknownKind",
    "UnsignedByte",
    "UnsignedVarInt",
    "UnsignedVarLong",
    "Vec3",
    "Vector",
    "read_game_rules",
    "read_item_stack",
    "read_item_stacks",
]
