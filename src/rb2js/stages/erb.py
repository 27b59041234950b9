"""Compiled ERB templates to ``render({...})`` functions.

A template compiles to a statement sequence that starts by initializing a
buffer (``_erbout`` or ``_buf``), appends to it and ends by returning it.
This stage turns the appends into ``buf += value``, coalesces them, maps
instance variables to locals and derives the render function's parameters
from what the body reads.
"""

from __future__ import annotations

import logging
from typing import Optional, Set

from ..coalesce import coalesce_tree
from ..scope import import_bindings, infer_params
from ..stage import Next, Stage, handles
from ..tree import Child, Node, Symbol, s

log = logging.getLogger(__name__)

BUFFER_NAMES = ("_erbout", "_buf")
APPEND_METHODS = ("<<", "append=")

# helpers a view calls without a receiver that are not template locals
HELPER_NAMES = frozenset({
    "render", "link_to", "form_with", "form_for", "form_tag",
    "pluralize", "truncate", "content_for", "notice", "raw",
    "String", "Array", "Hash", "Integer", "Float",
})


def template_buffer(node: Node) -> Optional[str]:
    """Buffer variable name when ``node`` is a compiled template body."""
    if node.kind != "begin" or len(node.children) < 2:
        return None

    first = node.children[0]
    if isinstance(first, Node) and first.kind == "lvasgn" and first.children and first.children[0] in BUFFER_NAMES:
        return str(first.children[0])
    return None


def _unwrap_parens(node: Child) -> Child:
    while isinstance(node, Node) and node.kind == "begin" and len(node.children) == 1:
        node = node.children[0]
    return node


class ErbStage(Stage):
    name = "erb"

    def __init__(self) -> None:
        super().__init__()
        self.bufvar: Optional[str] = None
        self.ivars: Set[str] = set()
        self.helpers: Set[str] = set()
        self._bound: Set[str] = set()

    def initialize(self) -> None:
        self.bufvar = None
        self.ivars = set()
        self.helpers = set()
        self._bound = set()

    def is_buffer(self, node: Child) -> bool:
        return (self.bufvar is not None and isinstance(node, Node) and node.kind == "lvar"
                and node.children[0] == self.bufvar)

    def ignored_name(self, name: str) -> bool:
        return (
            name == self.bufvar
            or name in HELPER_NAMES
            or name in self.helpers
            or name in self._bound
        )

    @handles("begin")
    def on_begin(self, node: Node, next_: Next) -> Child:
        bufvar = template_buffer(node)
        if bufvar is None or self.bufvar is not None:
            return next_(node)

        with self.scoped(bufvar=bufvar, ivars=set(), helpers=set(), _bound=set()):
            body = coalesce_tree(next_(node), bufvar, self.comments)

            self._bound = import_bindings(self.hoisted) | set(self.options.template_globals)
            params = infer_params(body, self.ivars, self.ignored_name)

        statements = body.children if isinstance(body, Node) and body.kind == "begin" else (body,)
        render = s("def", Symbol("render"), params, s("autoreturn", *statements))
        log.debug("template %s -> render(%s)", bufvar, ", ".join(str(p.children[0]) for p in params.children))
        return self.carry(node, render)

    @handles("lvasgn")
    def on_lvasgn(self, node: Node, next_: Next) -> Child:
        if self.bufvar is None or not node.children or node.children[0] != self.bufvar:
            return next_(node)

        return self.carry(node, node.updated(children=(node.children[0], s("str", ""))))

    @handles("ivar")
    def on_ivar(self, node: Node, next_: Next) -> Child:
        if self.bufvar is None:
            return next_(node)

        name = str(node.children[0]).lstrip("@")
        local = self.process(self.carry(node, node.updated(kind="lvar", children=(Symbol(name),))))

        # later stages may have renamed it; the parameter must match the body
        if isinstance(local, Node) and local.kind == "lvar":
            self.ivars.add(str(local.children[0]))
        return local

    @handles("send")
    def on_send(self, node: Node, next_: Next) -> Child:
        if self.bufvar is None or node.kind != "send" or len(node.children) < 2:
            return next_(node)

        target, method, *args = node.children

        if self.is_buffer(target) and method in APPEND_METHODS:
            if not args or args[0] is None:
                return next_(node)
            return self.carry(node, s("op_asgn", s("lvasgn", Symbol(self.bufvar)), Symbol("+"), self._append_value(args[0])))

        if method == "freeze" and not args and target is not None:
            return self.process(target)

        if method == "to_s" and not args and self.is_buffer(target):
            return self.process(target)

        if method == "html_safe" and not args and target is not None:
            return self.process(target)

        if method == "raw" and target is None and len(args) == 1:
            return self.process(args[0])

        if target is None and (method in HELPER_NAMES or str(method).endswith("_path")):
            return self._helper_call(node, next_)

        return next_(node)

    def _helper_call(self, node: Node, next_: Next) -> Child:
        result = next_(node)
        # record the name as later stages left it
        if isinstance(result, Node) and result.kind == "send" and result.children[0] is None:
            self.helpers.add(str(result.children[1]))
        return result

    def _append_value(self, arg: Child) -> Child:
        if isinstance(arg, Node) and arg.kind == "send" and len(arg.children) == 2 and arg.children[1] == "freeze":
            arg = arg.children[0]

        if isinstance(arg, Node) and arg.kind == "send" and len(arg.children) == 2 and arg.children[1] == "to_s":
            inner = self.process(_unwrap_parens(arg.children[0]))
            if isinstance(inner, Node) and inner.kind == "str":
                return inner
            return s("send", None, Symbol("String"), inner)

        return self.process(arg)
