"""Processing control-flow."""

import typing
from collections import OrderedDict
from typing import Dict, Generator, Iterable, List, Mapping

from type import Block, Instr

# NOTE: `call` is not considered a terminator because it transfers control back
# to the next instruction.
TERMINATORS = "jmp", "br", "ret"


class ControlFlowGraph:
    """Represents a Control Flow Graph (CFG) for a function.

    This class is responsible for constructing a CFG from a sequence of instructions,
    identifying the basic blocks, and determining the successor and predecessor relationships
    between blocks. It also indexes the instructions by the value they produce so that
    unnamed operands can be traced back to their producers.

    The instructions themselves are never modified; blocks hold references to them.
    """

    def __init__(self, func: Iterable[Instr]) -> None:
        """
        Args:
            func: An iterable of instructions representing the function.
        """
        self._blocks = name_blocks(form_blocks(func))
        self._successors = get_cfg(self._blocks)
        self._predecessors = find_predecessors(self._successors)
        self._producers = find_producers(self._blocks)

    def successors_of(self, block: str) -> List[str]:
        """Returns the block names of the successors.

        Args:
            block: The name of the block for which to retrieve successors.

        Returns:
            A list of block names that are successors of the specified block.
        """
        return self._successors[block]

    def predecessors_of(self, block: str) -> List[str]:
        """Returns the block names of the predecessors.

        Args:
            block: The name of the block for which to retrieve predecessors.

        Returns:
            A list of block names that are predecessors of the specified block.
        """
        return self._predecessors[block]

    @property
    def block_names(self) -> List[str]:
        """List of block names in the control flow graph.

        Returns:
            A list of block names in the order they appear in the CFG.
        """
        return list(self._blocks.keys())

    @property
    def blocks(self) -> Mapping[str, Block]:
        """Mapping of block names to blocks."""
        return self._blocks

    @property
    def exits(self) -> List[str]:
        """Names of the blocks without successors, in layout order."""
        return [name for name in self._blocks if not self._successors[name]]

    @property
    def producers(self) -> Mapping[str, Instr]:
        """Mapping of each `dest` in the function to the instruction defining it."""
        return self._producers


def form_blocks(body: Iterable[Instr]) -> Generator[Block, None, None]:
    """Converts a list of instructions into a list of basic blocks.

    For blocks that have a label at the beginning, such label will be the first instruction inside the block.

    Args:
        body: An iterable of instructions.

    Yields:
        Block of instructions.
    """

    def is_label(instr: Instr) -> bool:
        return "op" not in instr

    cur_block: Block = []

    for instr in body:
        if not is_label(instr):
            cur_block.append(instr)

            if instr["op"] in TERMINATORS:
                yield cur_block
                cur_block = []
        else:
            # A terminator followed by a label forms an empty basic block between them,
            # skip such block.
            if cur_block:
                yield cur_block
            cur_block = [instr]
    # tail case
    if cur_block:
        yield cur_block


def name_blocks(blocks: Iterable[Block]) -> typing.OrderedDict[str, Block]:
    """Assigns names to blocks. A block may or may not start with a label.

    For those without a label, a name will be created; for those with a label, the label is used
    as its name. The label is then removed since the name will be used for reference.
    Additionally, blocks without a terminator are fixed.

    Args:
        blocks: An iterable of blocks.

    Returns:
        An ordered dictionary mapping block names to blocks.
    """
    # Preserve the ordering of blocks for CFG construction.
    name_to_block = OrderedDict()
    next_label_number = 0
    for block in blocks:
        if "label" in block[0]:
            name = block[0]["label"]
            # remove the label
            block = block[1:]
        else:
            name = f"b{next_label_number}"
            next_label_number += 1

        name_to_block[name] = block

    add_terminators(name_to_block)
    return name_to_block


def add_terminators(blocks: typing.OrderedDict[str, Block]) -> None:
    """Ensures each block ends with a terminator instruction.

    If a block does not end with a terminator, it appends a jump to the next
    block or a return if it is the last block. This avoids fall-through by
    ensuring that each block has a clear transfer of control.

    Args:
        blocks: An ordered dictionary mapping block names to blocks.
    """
    names = list(blocks.keys())
    for i, block in enumerate(blocks.values()):
        if not block or block[-1]["op"] not in TERMINATORS:
            if i == len(blocks) - 1:
                block.append({"op": "ret", "args": []})
            else:
                block.append({"op": "jmp", "labels": [names[i + 1]]})


def find_predecessors(name2successors: Dict[str, List[str]]) -> Dict[str, List[str]]:
    """Finds the predecessors of blocks through their successors.

    Args:
        name2successors: A dictionary mapping block names to their successor block names.

    Returns:
        A dictionary mapping block names to their predecessor block names.
    """
    name2predecessors: Dict[str, List[str]] = {n: list() for n in name2successors}
    for name, successors in name2successors.items():
        for this_name in name2predecessors:
            if this_name in successors:
                name2predecessors[this_name].append(name)
    return name2predecessors


def get_cfg(name_to_block: typing.OrderedDict[str, Block]) -> Dict[str, List[str]]:
    """Produces a mapping from block names to their successor block names.

    Args:
        name_to_block: An ordered dictionary mapping block names to blocks.

    Returns:
        A dictionary mapping block names to lists of successor block names.

    Raises:
        KeyError: A jump targets a label that names no block.
    """
    successors = {}
    for name, block in name_to_block.items():
        last = block[-1]
        if last["op"] in ("jmp", "br"):
            successor = list(last["labels"])
            for label in successor:
                if label not in name_to_block:
                    raise KeyError(f"block {name!r} jumps to unknown label {label!r}")
        else:
            # Terminators were added by `name_blocks`, so this is `ret`.
            successor = []
        successors[name] = successor
    return successors


def find_producers(name_to_block: Mapping[str, Block]) -> Dict[str, Instr]:
    """Indexes the instructions of a function by their destination.

    Args:
        name_to_block: A mapping of block names to blocks.

    Returns:
        A dictionary mapping each `dest` to the instruction that defines it.
    """
    return {
        instr["dest"]: instr
        for block in name_to_block.values()
        for instr in block
        if "dest" in instr
    }
