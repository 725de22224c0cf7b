"""Resolving instruction operands to the variables they name.

- A named operand denotes the variable it names, minus any storage tag: `%x.addr` and `%x` are both `x`.
- Literal operands, and the results of `const` instructions, are constants and never denote a variable.
- An unnamed operand (`%0`) produced by a `load` denotes whatever the address of the load denotes.
  Load chains are followed until a named operand is reached.
- Anything else is unknown: it is neither a variable nor a constant.
"""

import logging
from enum import Enum, auto
from typing import Mapping, Optional, Set, TypeAlias, Union

from type import Category, Instr, Operand, categorize

logger = logging.getLogger(__name__)

SIGILS = "%@"
# Everything from the first separator onward is a scope or storage tag.
SEPARATOR = "."


class Marker(Enum):
    CONSTANT = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()


CONSTANT = Marker.CONSTANT
UNKNOWN = Marker.UNKNOWN

Resolved: TypeAlias = Union[str, Marker]


class UnresolvedOperandError(ValueError):
    """An operand could not be traced to a variable or a constant."""


def is_unnamed(operand: str) -> bool:
    return operand.lstrip(SIGILS).isdigit()


def strip_suffix(name: str) -> str:
    """Returns the stored name of a variable from its surface name.

    >>> strip_suffix("%x.addr")
    'x'
    """
    return name.lstrip(SIGILS).split(SEPARATOR, 1)[0]


def resolve(
    operand: Operand, producers: Mapping[str, Instr], strict: bool = False
) -> Resolved:
    """Resolves an operand to the name of the variable it denotes.

    Args:
        operand: The operand to resolve.
        producers: The instructions of the function, keyed by their `dest`.
        strict: Whether to reject operands that resolve to `UNKNOWN`.

    Returns:
        The variable name, `CONSTANT` or `UNKNOWN`.

    Raises:
        UnresolvedOperandError: The load chain is cyclic, or `strict` is set and
            the operand cannot be resolved.
    """
    seen: Set[str] = set()
    while isinstance(operand, str) and is_unnamed(operand):
        if operand in seen:
            raise UnresolvedOperandError(f"cyclic load chain through {operand!r}")
        seen.add(operand)

        producer = producers.get(operand)
        if producer is not None and producer.get("op") == "const":
            return CONSTANT
        if producer is None or categorize(producer) is not Category.LOAD:
            return _unknown(operand, producer, strict)
        operand = producer["args"][0]

    if not isinstance(operand, str):
        return CONSTANT
    name = strip_suffix(operand)
    if not name:
        return _unknown(operand, None, strict)
    return name


def result_name(instr: Instr) -> Optional[str]:
    """Returns the variable an instruction defines, if its result is named."""
    dest = instr.get("dest")
    if not isinstance(dest, str) or is_unnamed(dest):
        return None
    return strip_suffix(dest) or None


def _unknown(operand: str, producer: Optional[Instr], strict: bool) -> Marker:
    if producer is None:
        reason = "no producer"
    else:
        reason = f"produced by {producer.get('op')!r}"
    if strict:
        raise UnresolvedOperandError(f"cannot resolve operand {operand!r}: {reason}")
    logger.debug("operand %r is unknown (%s)", operand, reason)
    return UNKNOWN
