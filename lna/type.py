from enum import Enum, auto
from typing import Any, List, MutableMapping, TypeAlias, Union

Instr: TypeAlias = MutableMapping[str, Any]
Block: TypeAlias = List[Instr]
# A variable or value reference (`%x.addr`, `%0`), or a literal constant.
Operand: TypeAlias = Union[str, int, float, bool, None]

BINARY_OPS = frozenset(
    {
        "add",
        "sub",
        "mul",
        "div",
        "sdiv",
        "udiv",
        "rem",
        "srem",
        "urem",
        "fadd",
        "fsub",
        "fmul",
        "fdiv",
        "frem",
        "shl",
        "lshr",
        "ashr",
        "and",
        "or",
        "xor",
    }
)


class Category(Enum):
    STORE = auto()
    LOAD = auto()
    BINARY = auto()
    # Control flow, calls, comparisons, allocas...
    OTHER = auto()

    def __str__(self) -> str:
        return self.name.lower()


def categorize(instr: Instr) -> Category:
    op = instr.get("op")
    if op == "store":
        return Category.STORE
    if op == "load":
        return Category.LOAD
    if op in BINARY_OPS:
        return Category.BINARY
    return Category.OTHER
