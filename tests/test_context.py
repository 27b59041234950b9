from __future__ import annotations

import pytest

from tests.support.harness import (
    CommentTable,
    CompileOptions,
    Next,
    Node,
    SourcePos,
    Stage,
    at,
    call,
    handles,
    lvar,
    run_pipeline,
    s,
    sym,
)
from rb2js.context import DEFAULT_EXCLUDED, HoistList, MethodFilter, comment_key


class WrapInParens(Stage):
    """Rewrites every lvar into a wrapper around a fresh inner node."""

    name = "wrap"

    @handles("lvar")
    def on_lvar(self, node: Node, next_: Next):
        wrapper = s("begin", s("lvar", node.children[0]))
        return self.carry(node, wrapper)


def test_hoist_push_is_idempotent_structurally() -> None:
    hoisted = HoistList()
    first = s("import", "fs", s("attr", None, sym("fs")))
    again = s("import", "fs", s("attr", None, sym("fs")))

    assert hoisted.push(first) is True
    assert hoisted.push(again) is False
    assert len(hoisted) == 1
    assert again in hoisted
    assert list(hoisted) == [first]


def test_hoist_ordered_puts_imports_first() -> None:
    hoisted = HoistList()
    setup = s("lvasgn", sym("x"), s("int", 1))
    imp = s("import", "fs", s("attr", None, sym("fs")))

    hoisted.push(setup)
    hoisted.push(imp)

    assert hoisted.ordered() == [imp, setup]
    assert list(hoisted) == [setup, imp]


def test_comment_table_keys_by_position_and_kind() -> None:
    comments = CommentTable()
    outer = Node("begin", (), SourcePos(1, 1, 0, 5))
    inner = Node("lvar", (sym("x"),), SourcePos(1, 1, 0, 5))

    comments.attach(outer, "outer")

    assert comment_key(outer) == (0, 5, "begin")
    assert comments.get(outer) == ["outer"]
    assert comments.get(inner) == []


def test_comment_attach_requires_position() -> None:
    with pytest.raises(ValueError):
        CommentTable().attach(s("lvar", sym("x")), "lost")


def test_transfer_moves_and_clears() -> None:
    comments = CommentTable()
    a = at(s("lvar", sym("a")), 1, 0)
    b = at(s("send", None, sym("b")), 2, 10)

    comments.attach(a, "note")
    comments.transfer(a, b)

    assert comments.get(a) == []
    assert comments.get(b) == ["note"]
    assert len(comments) == 1


def test_rewrite_into_wrapper_keeps_single_comment_on_wrapper() -> None:
    original = at(lvar("x"), 1, 0, 1)
    comments = CommentTable()
    comments.attach(original, "the x")

    result = run_pipeline(original, [WrapInParens()], comments=comments)
    wrapper = result.tree
    inner = wrapper.children[0]

    assert wrapper.kind == "begin"
    assert comments.get(wrapper) == ["the x"]
    assert comments.get(inner) == []
    assert comments.get(original) == []
    assert len(result.comments.entries()) == 1


def test_method_filter_defaults() -> None:
    mf = MethodFilter()

    assert DEFAULT_EXCLUDED == ("call",)
    assert mf.excluded("call")
    assert not mf.excluded("each")
    assert mf.enabled() == "all"


def test_method_filter_include_and_exclude_deltas() -> None:
    mf = MethodFilter()

    mf.include("call")
    mf.exclude("each")

    assert not mf.excluded("call")
    assert mf.excluded("each")


def test_method_filter_include_only_algebra() -> None:
    mf = MethodFilter()
    mf.include_only("each", "puts")

    assert mf.enabled() == {"each", "puts"}
    assert mf.excluded("upcase")
    assert not mf.excluded("each")

    mf.include("upcase")
    mf.exclude("puts")

    assert mf.enabled() == {"each", "upcase"}


def test_method_filter_include_all_clears_defaults() -> None:
    mf = MethodFilter()
    mf.include_all()

    assert not mf.excluded("call")


def test_method_filter_from_options() -> None:
    opts = CompileOptions(include=("call",), exclude=("each",))
    mf = MethodFilter.from_options(opts)

    assert not mf.excluded("call")
    assert mf.excluded("each")

    only = MethodFilter.from_options(CompileOptions(include_only=("puts",)))
    assert only.enabled() == {"puts"}


def test_stage_sees_method_filter() -> None:
    seen = []

    class Probe(Stage):
        name = "probe"

        @handles("send")
        def on_send(self, node: Node, next_: Next):
            seen.append((node.children[1], self.excluded(node.children[1])))
            return next_(node)

    run_pipeline(s("begin", call(None, "call"), call(None, "each")), [Probe()], CompileOptions(exclude=("each",)))

    assert seen == [("call", True), ("each", True)]
