from __future__ import annotations

import pytest

from tests.support.harness import Node, SourcePos, Symbol, s, sym, to_sexp
from rb2js.tree import find_node_by_kind, is_send, walk


def test_structural_equality_and_hash() -> None:
    a = s("send", None, sym("puts"), s("str", "hi"))
    b = s("send", None, sym("puts"), s("str", "hi"))

    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1


def test_position_is_ignored_by_equality() -> None:
    plain = s("lvar", sym("x"))
    placed = plain.with_meta(SourcePos(3, 5, 10, 11))

    assert plain == placed
    assert placed.meta.line == 3


def test_literal_types_are_distinct_children() -> None:
    assert s("int", 1) != s("int", True)
    assert s("int", 1) != s("int", 1.0)


def test_nodes_are_immutable() -> None:
    node = s("lvar", sym("x"))

    with pytest.raises(AttributeError):
        node.kind = "ivar"  # type: ignore[misc]

    with pytest.raises(AttributeError):
        del node.children


def test_with_children_returns_self_when_unchanged() -> None:
    inner = s("str", "a")
    node = s("begin", inner, s("int", 1))

    assert node.with_children([inner, s("int", 1)]) is node
    assert node.with_children(list(node.children)) is node


def test_with_children_builds_new_node_and_keeps_position() -> None:
    pos = SourcePos(1, 1, 0, 9)
    node = Node("begin", (s("str", "a"),), pos)

    updated = node.with_children([s("str", "b")])

    assert updated is not node
    assert updated.kind == "begin"
    assert updated.children == (s("str", "b"),)
    assert updated.meta == pos
    assert node.children == (s("str", "a"),)


def test_updated_changes_kind_and_keeps_position() -> None:
    pos = SourcePos(2, 1, 4, 8)
    node = Node("ivar", (sym("@x"),), pos)

    local = node.updated(kind="lvar", children=(sym("x"),))

    assert local == s("lvar", sym("x"))
    assert local.meta == pos


def test_symbol_compares_with_plain_strings() -> None:
    assert Symbol("puts") == "puts"
    assert repr(Symbol("puts")) == ":puts"
    assert repr(Symbol("a b")) == ":'a b'"


def test_walk_is_preorder() -> None:
    tree = s("begin", s("lvar", sym("a")), s("send", s("lvar", sym("b")), sym("c")))

    kinds = [n.kind for n in walk(tree)]

    assert kinds == ["begin", "lvar", "send", "lvar"]


def test_find_and_predicates() -> None:
    tree = s("begin", s("csend", s("lvar", sym("a")), sym("size")))

    found = find_node_by_kind(tree, ["csend"])

    assert found is not None
    assert is_send(found, "size")
    assert not is_send(found, "length")


def test_to_sexp_renders_flat_and_nested() -> None:
    assert to_sexp(s("str", 'say "hi"\n')) == 's(:str, "say \\"hi\\"\\n")'
    assert to_sexp(s("send", None, sym("x"))) == "s(:send, nil, :x)"

    nested = to_sexp(s("begin", s("true"), s("int", 2)))
    assert nested == "s(:begin,\n  s(:true),\n  s(:int, 2))"
    assert repr(s("begin", s("int", 2))) == "s(:begin, s(:int, 2))"
