from __future__ import annotations

import pytest

from tests.support.harness import BUF, append, call, each_block, fcall, lvar, s, sym, text
from rb2js.scope import free_variables, import_bindings, infer_params


def template(*stmts):
    return s("begin", s("lvasgn", sym(BUF), text("")), *stmts)


def kwargs(*names: str):
    return s("args", *[s("kwarg", sym(name)) for name in names])


def test_reads_of_unassigned_names_are_free() -> None:
    body = template(append(fcall("title")), append(call(fcall("author"), "name")))

    assert free_variables(body) == ["title", "author"]
    assert infer_params(body) == kwargs("author", "title")


def test_assignment_before_read_binds() -> None:
    body = template(s("lvasgn", sym("title"), text("x")), append(lvar("title")))

    assert free_variables(body) == []
    assert infer_params(body) == kwargs()


def test_read_before_assignment_is_free() -> None:
    body = template(append(lvar("title")), s("lvasgn", sym("title"), text("x")))

    assert free_variables(body) == ["title"]


def test_assignment_value_is_read_first() -> None:
    body = s("lvasgn", sym("count"), s("send", lvar("count"), sym("+"), s("int", 1)))

    assert free_variables(body) == ["count"]


def test_block_arguments_are_scoped_to_the_block() -> None:
    body = template(
        each_block(fcall("items"), "item", append(call(lvar("item"), "name"))),
        append(lvar("item")),
    )

    assert free_variables(body) == ["items", "item"]


def test_block_locals_do_not_leak() -> None:
    inner = s("lvasgn", sym("tmp"), text("x"))
    body = template(each_block(lvar("rows"), "r", inner), append(lvar("tmp")))

    assert free_variables(body) == ["rows", "tmp"]


def test_for_variable_stays_bound_after_loop() -> None:
    body = template(s("for", s("lvasgn", sym("i")), lvar("list"), append(lvar("i"))), append(lvar("i")))

    assert free_variables(body) == ["list"]


def test_calls_with_receivers_or_args_are_not_locals() -> None:
    body = s(
        "begin",
        fcall("link_to", text("x"), fcall("target")),
        call(lvar("obj"), "size"),
        fcall("Helper"),
    )

    assert free_variables(body) == ["target", "obj"]


def test_nested_method_definitions_are_opaque() -> None:
    body = s("begin", s("def", sym("helper"), s("args"), lvar("hidden")), lvar("shown"))

    assert free_variables(body) == ["shown"]


def test_ignore_predicate() -> None:
    body = s("begin", append(fcall("title")), append(fcall("edit_path")), append(lvar(BUF)))

    names = free_variables(body, lambda name: name == BUF or name.endswith("_path"))

    assert names == ["title"]


@pytest.mark.parametrize(
    "first, second",
    [
        pytest.param(["title", "author"], ["author", "title"], id="reversed"),
        pytest.param(["b", "a", "c"], ["c", "b", "a"], id="three"),
    ],
)
def test_signature_depends_only_on_free_names(first, second) -> None:
    one = template(*[append(fcall(n)) for n in first])
    two = template(*[append(lvar(n)) for n in second])

    assert infer_params(one) == infer_params(two)


def test_fields_come_first_and_are_not_repeated() -> None:
    body = template(append(lvar("title")), append(fcall("count")))

    assert infer_params(body, fields=["title", "post"]) == kwargs("post", "title", "count")


def test_import_bindings() -> None:
    decls = [
        s("import", "fs", s("attr", None, sym("fs"))),
        s("lvasgn", sym("ARGV"), s("int", 1)),
    ]

    assert import_bindings(decls) == {"fs"}


@pytest.mark.parametrize("method", ["lambda", "proc", "loop"])
def test_receiverless_block_call_is_not_a_local(method) -> None:
    fn = s("block", fcall(method), s("args", s("arg", sym("x"))), lvar("x"))
    body = template(s("lvasgn", sym("fmt"), fn), append(call(lvar("fmt"), "call", fcall("title"))))

    assert free_variables(body) == ["title"]
    assert infer_params(body) == kwargs("title")


def test_block_call_arguments_are_still_read() -> None:
    body = template(s("block", fcall("cache", fcall("key")), s("args"), append(fcall("title"))))

    assert free_variables(body) == ["key", "title"]
