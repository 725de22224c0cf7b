#!/usr/bin/env python3
"""The data flow solver for live variables."""

import argparse
import json
import logging
import sys
from collections import deque
from types import MappingProxyType
from typing import (
    Any,
    Deque,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Set,
    TypeVar,
)

import live
from cfg import ControlFlowGraph
from names import UnresolvedOperandError
from type import Instr

logger = logging.getLogger(__name__)

T = TypeVar("T")


def set_union(iterable: Iterable[Set[T]]) -> Set[T]:
    return set().union(*iterable)


class BlockFacts(NamedTuple):
    uses: FrozenSet[str]
    kills: FrozenSet[str]
    live_in: FrozenSet[str]
    live_out: FrozenSet[str]


class LivenessSolver:
    """Solves the live variables analysis of a single function to a fixpoint.

    The local facts of the blocks are computed once, on construction. Each sweep then walks
    the CFG backward from its exits, visiting every block exactly once, until a sweep changes
    no IN or OUT set.
    """

    def __init__(self, cfg: ControlFlowGraph, strict: bool = False) -> None:
        """
        Args:
            cfg: The control flow graph of the function. It is only read.
            strict: Whether operands that cannot be resolved are rejected.

        Raises:
            UnresolvedOperandError: `strict` is set and an operand cannot be resolved.
        """
        self._cfg = cfg
        self._uses: Dict[str, FrozenSet[str]] = {}
        self._kills: Dict[str, FrozenSet[str]] = {}
        for name, block in cfg.blocks.items():
            used, killed = live.facts(block, cfg.producers, strict)
            self._uses[name] = frozenset(used)
            self._kills[name] = frozenset(killed)

        self._ins: Dict[str, Set[str]] = {n: set() for n in cfg.block_names}
        self._outs: Dict[str, Set[str]] = {n: set() for n in cfg.block_names}
        self._order = self._sweep_order()
        self.sweeps = 0

    def _sweep_order(self) -> List[str]:
        """Orders the blocks breadth-first along the predecessor edges.

        All exits are seeded at once. Blocks that cannot reach an exit, such as those on an
        infinite loop, are picked up afterwards starting from the last one in the layout.
        """
        order: List[str] = []
        worklist: Deque[str] = deque(self._cfg.exits)
        seen: Set[str] = set(worklist)
        leftovers = reversed(self._cfg.block_names)
        while True:
            while worklist:
                block_name = worklist.popleft()
                order.append(block_name)
                for pred in self._cfg.predecessors_of(block_name):
                    if pred not in seen:
                        seen.add(pred)
                        worklist.append(pred)

            for block_name in leftovers:
                if block_name not in seen:
                    seen.add(block_name)
                    worklist.append(block_name)
                    break
            else:
                return order

    def sweep(self) -> bool:
        """Recomputes the IN and OUT sets of every block once.

        Returns:
            Whether any IN or OUT set changed.
        """
        changed = False
        for block_name in self._order:
            # OUT(b) = Union(IN(s) for s in successors(b))
            out = set_union(
                self._ins[succ] for succ in self._cfg.successors_of(block_name)
            )
            in_ = live.in_(self._uses[block_name], self._kills[block_name], out)

            if out != self._outs[block_name] or in_ != self._ins[block_name]:
                changed = True
            self._ins[block_name] = in_
            self._outs[block_name] = out
        self.sweeps += 1
        logger.debug("sweep %d: %s", self.sweeps, "changed" if changed else "stable")
        return changed

    def solve(self) -> Mapping[str, BlockFacts]:
        """Sweeps until the fixpoint is reached.

        Returns:
            A read-only mapping from block names, in layout order, to their facts.
        """
        while self.sweep():
            pass
        logger.info(
            "converged after %d sweeps over %d blocks", self.sweeps, len(self._order)
        )
        return self.facts

    @property
    def facts(self) -> Mapping[str, BlockFacts]:
        """The current facts of each block."""
        return MappingProxyType(
            {
                n: BlockFacts(
                    self._uses[n],
                    self._kills[n],
                    frozenset(self._ins[n]),
                    frozenset(self._outs[n]),
                )
                for n in self._cfg.block_names
            }
        )


def analyze(instrs: Iterable[Instr], strict: bool = False) -> Mapping[str, BlockFacts]:
    """Runs the live variables analysis on the instructions of a function.

    Args:
        instrs: The instructions of the function.
        strict: Whether operands that cannot be resolved are rejected.

    Returns:
        A read-only mapping from block names to their facts.
    """
    return LivenessSolver(ControlFlowGraph(instrs), strict).solve()


def report(func_name: str, facts: Mapping[str, BlockFacts]) -> None:
    print(f"{func_name}:")
    for block_name, fact in facts.items():
        print(f"  {block_name}:")
        for label, names in zip(("use", "kill", "in", "out"), fact):
            print(f"    {label + ':':6}", end="")
            print(*sorted(names), sep=", ")


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        "lna",
        description="Computes the live variables of each basic block of the functions "
        "in a JSON program read from stdin.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="reject operands that resolve to neither a variable nor a constant",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="log progress (-v) and resolution details (-vv) to stderr",
    )
    args = parser.parse_args(argv)

    level = (logging.WARNING, logging.INFO, logging.DEBUG)[min(args.verbose, 2)]
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    prog: Dict[str, List[Dict[str, Any]]] = json.load(sys.stdin)
    if "functions" not in prog:
        print("Missing `functions` section.", file=sys.stderr)
        sys.exit(1)

    for func in prog["functions"]:
        logger.info("analyzing %s", func["name"])
        try:
            facts = analyze(func["instrs"], args.strict)
        except UnresolvedOperandError as e:
            print(f"{func['name']}: {e}", file=sys.stderr)
            sys.exit(1)
        report(func["name"], facts)


if __name__ == "__main__":
    main()
