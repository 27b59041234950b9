from __future__ import annotations

from typing import List

import pytest

from tests.support.harness import (
    Next,
    Node,
    RecordingStage,
    SourcePos,
    Stage,
    StructuralError,
    append,
    call,
    handles,
    lvar,
    run_pipeline,
    s,
    sym,
)
from rb2js.dispatch import KIND_ALIASES, Dispatcher, collect_chains


class UpcaseStrings(Stage):
    name = "upcase"

    @handles("str")
    def on_str(self, node: Node, next_: Next):
        return s("str", node.children[0].upper())


class CountingCsend(Stage):
    name = "csend-counter"

    def __init__(self) -> None:
        super().__init__()
        self.seen: List[str] = []

    @handles("send")
    def on_send(self, node: Node, next_: Next):
        self.seen.append(f"send-handler:{node.kind}")
        return next_(node)


class OwnCsend(CountingCsend):
    @handles("csend")
    def on_csend(self, node: Node, next_: Next):
        self.seen.append("csend-handler")
        return next_(node)


class Rejecting(Stage):
    name = "rejecting"

    @handles("zsuper")
    def on_zsuper(self, node: Node, next_: Next):
        self.reject(node, "no super here")


def test_untouched_tree_comes_back_identical() -> None:
    tree = s("begin", append(s("str", "a")), s("if", lvar("c"), s("int", 1), None))

    result = run_pipeline(tree, [RecordingStage("a", [])])

    assert result.tree is tree


def test_literals_and_nil_pass_through() -> None:
    dispatcher = Dispatcher({})

    assert dispatcher.process(None) is None
    assert dispatcher.process("text") == "text"
    assert dispatcher.process(3) == 3


def test_only_changed_ancestors_are_rebuilt() -> None:
    untouched = s("array", s("int", 1))
    changed_parent = s("send", None, sym("puts"), s("str", "x"))
    tree = s("begin", untouched, changed_parent)

    result = run_pipeline(tree, [UpcaseStrings()]).tree

    assert result is not tree
    assert result.children[0] is untouched
    assert result.children[1] == s("send", None, sym("puts"), s("str", "X"))


def test_rebuilt_nodes_keep_their_position() -> None:
    pos = SourcePos(1, 1, 0, 20)
    tree = Node("begin", (s("str", "a"),), pos)

    result = run_pipeline(tree, [UpcaseStrings()]).tree

    assert result.meta == pos


def test_synthetic_kind_reaches_base_handler() -> None:
    stage = CountingCsend()
    tree = s("csend", lvar("a"), sym("b"))

    run_pipeline(tree, [stage])

    assert stage.seen == ["send-handler:csend"]


def test_direct_registration_beats_alias() -> None:
    stage = OwnCsend()

    run_pipeline(s("begin", s("csend", lvar("a"), sym("b")), call(lvar("a"), "c")), [stage])

    assert stage.seen == ["csend-handler", "send-handler:send"]


def test_chains_are_built_once_per_pipeline() -> None:
    log: List[str] = []
    chains = collect_chains([RecordingStage("one", log), UpcaseStrings()])

    assert [stage.name for stage, _ in chains["send"]] == ["recording"]
    assert [stage.name for stage, _ in chains["str"]] == ["upcase"]
    for alias, base in KIND_ALIASES.items():
        if base == "send":
            assert alias in chains


def test_unknown_kinds_recurse_into_children() -> None:
    tree = s("some_future_kind", s("str", "x"), sym("keep"), 7)

    result = run_pipeline(tree, [UpcaseStrings()]).tree

    assert result == s("some_future_kind", s("str", "X"), sym("keep"), 7)


def test_error_gets_nearest_position() -> None:
    inner = s("zsuper")
    outer = Node("begin", (inner,), SourcePos(4, 2, 30, 40))

    with pytest.raises(StructuralError) as exc_info:
        run_pipeline(outer, [Rejecting()])

    err = exc_info.value
    assert err.line == 4
    assert err.column == 2
    assert str(err) == "no super here (line 4, col 2)"
