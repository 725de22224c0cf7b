import pytest

import live
from cfg import find_producers
from names import UnresolvedOperandError


def local_facts(block, strict=False):
    return live.facts(block, find_producers({"b": block}), strict)


def test_store_constant():
    block = [{"op": "store", "args": [5, "%x.addr"]}]
    assert local_facts(block) == (set(), {"x"})


def test_store_variable():
    block = [
        {"op": "load", "dest": "%0", "args": ["%x.addr"]},
        {"op": "store", "args": ["%0", "%y.addr"]},
    ]
    assert local_facts(block) == ({"x"}, {"y"})


def test_store_named_value():
    block = [{"op": "store", "args": ["%x", "%y.addr"]}]
    assert local_facts(block) == ({"x"}, {"y"})


def test_binary_result_is_local():
    block = [
        {"op": "load", "dest": "%0", "args": ["%a.addr"]},
        {"op": "load", "dest": "%1", "args": ["%b.addr"]},
        {"op": "add", "dest": "%t", "args": ["%0", "%1"]},
        {"op": "store", "args": ["%t", "%c.addr"]},
    ]
    assert local_facts(block) == ({"a", "b"}, {"c"})


def test_unnamed_binary_result_is_ignored():
    block = [
        {"op": "load", "dest": "%0", "args": ["%a.addr"]},
        {"op": "mul", "dest": "%1", "args": ["%0", 2]},
        {"op": "store", "args": ["%1", "%c.addr"]},
    ]
    assert local_facts(block) == ({"a"}, {"c"})


def test_unnamed_binary_result_is_rejected_when_strict():
    block = [
        {"op": "mul", "dest": "%1", "args": [3, 2]},
        {"op": "store", "args": ["%1", "%c.addr"]},
    ]
    with pytest.raises(UnresolvedOperandError):
        local_facts(block, strict=True)


def test_use_after_store_is_not_exposed():
    block = [
        {"op": "store", "args": [1, "%x.addr"]},
        {"op": "load", "dest": "%0", "args": ["%x.addr"]},
        {"op": "store", "args": ["%0", "%y.addr"]},
    ]
    assert local_facts(block) == (set(), {"x", "y"})


def test_use_before_store_is_exposed():
    block = [
        {"op": "load", "dest": "%0", "args": ["%x.addr"]},
        {"op": "add", "dest": "%inc", "args": ["%0", 1]},
        {"op": "store", "args": ["%inc", "%x.addr"]},
    ]
    assert local_facts(block) == ({"x"}, {"x"})


def test_binary_operands_after_store():
    block = [
        {"op": "store", "args": [2, "%a.addr"]},
        {"op": "add", "dest": "%s", "args": ["%a", "%b"]},
    ]
    assert local_facts(block) == ({"b"}, {"a"})


def test_earlier_use_survives_redefinition():
    """Redefining a stored variable later in the block keeps the earlier use exposed."""
    block = [
        {"op": "store", "args": ["%t", "%y.addr"]},
        {"op": "store", "args": [0, "%t.addr"]},
        {"op": "add", "dest": "%t", "args": [1, 2]},
    ]
    assert local_facts(block) == ({"t"}, {"t", "y"})


def test_pointer_chain():
    block = [
        {"op": "load", "dest": "%0", "args": ["%p.addr"]},
        {"op": "load", "dest": "%1", "args": ["%0"]},
    ]
    assert local_facts(block) == ({"p"}, set())


def test_other_instructions_are_transparent():
    block = [
        {"op": "alloca", "dest": "%x.addr"},
        {"op": "call", "dest": "%r", "funcs": ["f"], "args": ["%z"]},
        {"op": "icmp", "dest": "%c", "args": ["%a", "%b"]},
        {"op": "br", "args": ["%c"], "labels": ["l", "r"]},
    ]
    assert local_facts(block) == (set(), set())


def test_store_to_constant_address_kills_nothing():
    block = [{"op": "store", "args": ["%v", 0]}]
    assert local_facts(block) == ({"v"}, set())


def test_malformed_store():
    with pytest.raises(ValueError):
        local_facts([{"op": "store", "args": ["%v"]}])


def test_uses_and_kills():
    block = [
        {"op": "load", "dest": "%0", "args": ["%x.addr"]},
        {"op": "store", "args": ["%0", "%y.addr"]},
    ]
    producers = find_producers({"b": block})
    assert live.uses(block, producers) == {"x"}
    assert live.kills(block, producers) == {"y"}


def test_in():
    assert live.in_({"a"}, {"b", "c"}, {"b", "d"}) == {"a", "d"}
