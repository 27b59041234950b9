from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import SexpSyntaxError, Symbol, parse_source, s, sym, to_sexp
from rb2js.sexp import parse_sexp


@pytest.mark.parametrize(
    "source, expected",
    [
        pytest.param("nil", None, id="nil"),
        pytest.param("true", True, id="true"),
        pytest.param("42", 42, id="int"),
        pytest.param("-1.5", -1.5, id="float"),
        pytest.param('"a\\"b\\n"', 'a"b\n', id="escaped-string"),
        pytest.param(":puts", Symbol("puts"), id="symbol"),
        pytest.param(":include?", Symbol("include?"), id="predicate-symbol"),
        pytest.param(":<<", Symbol("<<"), id="operator-symbol"),
        pytest.param(':"with space"', Symbol("with space"), id="quoted-symbol"),
    ],
)
def test_atoms(source, expected) -> None:
    value = parse_sexp(source)

    assert value == expected
    assert type(value) is type(expected)


def test_nested_nodes() -> None:
    tree = parse_sexp('s(:send, nil, :puts, s(:str, "hi"),)')

    assert tree == s("send", None, sym("puts"), s("str", "hi"))
    assert isinstance(tree.children[1], Symbol)


def test_nodes_carry_positions() -> None:
    source = 's(:begin,\n  s(:lvar, :x))'
    tree = parse_sexp(source)
    inner = tree.children[0]

    assert tree.meta.line == 1
    assert tree.meta.start_pos == 0
    assert tree.meta.end_pos == len(source)
    assert inner.meta.line == 2
    assert inner.meta.column == 3
    assert source[inner.meta.start_pos:inner.meta.end_pos] == "s(:lvar, :x)"


def test_comments_attach_to_following_node() -> None:
    source = dedent(
        """\
        # header
        s(:begin,
          # about x
          s(:lvar, :x),
          s(:lvar, :y))
        # trailing
        """
    )

    parsed = parse_source(source)
    tree = parsed.tree

    assert parsed.comments.get(tree) == ["header"]
    assert parsed.comments.get(tree.children[0]) == ["about x"]
    assert parsed.comments.get(tree.children[1]) == []
    assert parsed.raw_comments == ["# header", "# about x", "# trailing"]


def test_roundtrip_through_printer() -> None:
    tree = s("block", s("send", s("lvar", sym("items")), sym("map")), s("args", s("arg", sym("i"))), s("str", "x"))

    assert parse_sexp(to_sexp(tree)) == tree


@pytest.mark.parametrize(
    "source",
    [
        pytest.param("s(:send, nil", id="unterminated"),
        pytest.param("s(send)", id="bare-kind"),
        pytest.param("s(:x) s(:y)", id="two-roots"),
        pytest.param("s(:x, %)", id="bad-char"),
    ],
)
def test_syntax_errors(source) -> None:
    with pytest.raises(SexpSyntaxError) as exc_info:
        parse_sexp(source)

    assert exc_info.value.line == 1
