"""The Live Variables analysis, local part.

- At the entry and exit of each basic block, the analysis determines which variables needs to be kept alive, as they will possibly be used later.
- This is a backward analysis with the equation: `IN(b) = Union(Uses(b), OUT(b) - Kills(b))`.
- For blocks with multiple successors, the sets are merged using `Union`.

Variables live in memory: a `store` kills the variable at its address, while `load`s and
the operands of binary operations use them. Unnamed operands are traced back through their
producers by `names.resolve`.
"""

from typing import Mapping, Set, Tuple

from names import resolve, result_name
from type import Block, Category, Instr, Operand, categorize


def facts(
    b: Block, producers: Mapping[str, Instr], strict: bool = False
) -> Tuple[Set[str], Set[str]]:
    """Determines the upward-exposed uses and the kills of a block in a single pass.

    Args:
        b: The basic block being analyzed.
        producers: The instructions of the function, keyed by their `dest`.
        strict: Whether operands that cannot be resolved are rejected.

    Returns:
        A tuple of the variables used before any local redefinition, and the
        variables stored to in the block.

    Note:
        The order of the instructions matters. A variable is only used if we see its use
        before it is stored to, or defined by a binary operation, in the same block.
    """
    used: Set[str] = set()
    killed: Set[str] = set()
    # Results of the binary operations seen so far.
    defined: Set[str] = set()

    def use(operand: Operand) -> None:
        name = resolve(operand, producers, strict)
        if isinstance(name, str) and name not in defined and name not in killed:
            used.add(name)

    for instr in b:
        category = categorize(instr)
        if category is Category.STORE:
            value, address = instr["args"]
            use(value)
            # A store always overwrites the whole variable.
            name = resolve(address, producers, strict)
            if isinstance(name, str):
                killed.add(name)
        elif category is Category.BINARY:
            lhs, rhs = instr["args"]
            use(lhs)
            use(rhs)
            result = result_name(instr)
            if result is not None:
                defined.add(result)
        elif category is Category.LOAD:
            (address,) = instr["args"]
            use(address)
    return used, killed


def uses(b: Block, producers: Mapping[str, Instr]) -> Set[str]:
    """Determines the set of variables used in a block before being redefined.

    Args:
        b: The basic block being analyzed.
        producers: The instructions of the function, keyed by their `dest`.

    Returns:
        A set of variable names that are used in the block.
    """
    return facts(b, producers)[0]


def kills(b: Block, producers: Mapping[str, Instr]) -> Set[str]:
    """Determines the set of variables killed in a block.

    Args:
        b: The basic block being analyzed.
        producers: The instructions of the function, keyed by their `dest`.

    Returns:
        A set of variable names that are killed in the block.
    """
    return facts(b, producers)[1]


def in_(used: Set[str], killed: Set[str], out: Set[str]) -> Set[str]:
    """Computes the IN set for a block, determining which variables are alive.

    Args:
        used: The upward-exposed uses of the block.
        killed: The variables killed in the block.
        out: The OUT set of the block.

    Returns:
        The IN set of the block.

    Note:
        A variable is considered alive if it may be used later. If we see a use
        of it, we know it's live before the use. If we do not see a use, it's
        alive only if it's already alive in the OUT set and the block does not
        overwrite it.
    """
    return used.union(out - killed)
