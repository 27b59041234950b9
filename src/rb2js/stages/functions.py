"""Ruby core method names mapped onto their JavaScript counterparts."""

from __future__ import annotations

from typing import Dict

from ..stage import Next, Stage, handles
from ..tree import Child, Node, Symbol, s

# receiver.ruby_name(args) -> receiver.js_name(args)
RENAMES: Dict[str, str] = {
    "each": "forEach",
    "each_with_index": "forEach",
    "to_s": "toString",
    "upcase": "toUpperCase",
    "downcase": "toLowerCase",
    "include?": "includes",
    "start_with?": "startsWith",
    "end_with?": "endsWith",
    "strip": "trim",
    "lstrip": "trimStart",
    "rstrip": "trimEnd",
    "index": "indexOf",
    "to_i": "parseInt",
    "select": "filter",
    "any?": "some",
    "all?": "every",
    "find_index": "findIndex",
}

# needs ES2019 for trimStart/trimEnd
_ES2019_RENAMES = ("lstrip", "rstrip")
_LENGTH_ALIASES = ("size", "length", "count")


class FunctionsStage(Stage):
    name = "functions"

    @handles("send")
    def on_send(self, node: Node, next_: Next) -> Child:
        if node.kind not in ("send", "csend") or len(node.children) < 2:
            return next_(node)

        target, method, *args = node.children

        if method == "__proto__=":
            self.reject(node, "assigning __proto__ is not supported")

        if target is None:
            if method == "puts" and not self.excluded("puts"):
                return self.process(self.carry(node, s("send", s("attr", None, Symbol("console")), Symbol("log"), *args)))
            return next_(node)

        if self.excluded(method):
            return next_(node)

        if method in RENAMES and (method != "to_i" or not args):
            if method in _ES2019_RENAMES:
                self.require_es(2019, node, f"{method}()")
            if method == "to_i":
                call = s("send", None, Symbol("parseInt"), target)
                return self.process(self.carry(node, call))
            return next_(node.updated(children=(target, Symbol(RENAMES[method]), *args)))

        # the remaining rewrites change the node kind and would drop the `?.`
        if node.kind == "csend":
            return next_(node)

        if method in _LENGTH_ALIASES and not args:
            return self.process(self.carry(node, s("attr", target, Symbol("length"))))

        if method == "empty?" and not args:
            length = s("attr", target, Symbol("length"))
            return self.process(self.carry(node, s("send", length, Symbol("=="), s("int", 0))))

        if method == "first" and not args:
            return self.process(self.carry(node, s("send", target, Symbol("[]"), s("int", 0))))

        if method == "last" and not args:
            if self.es(2022):
                return self.process(self.carry(node, s("send", target, Symbol("at"), s("int", -1))))
            index = s("send", s("attr", target, Symbol("length")), Symbol("-"), s("int", 1))
            return self.process(self.carry(node, s("send", target, Symbol("[]"), index)))

        if method == "flatten" and not args:
            self.require_es(2019, node, "flatten")
            return self.process(self.carry(node, node.updated(
                children=(target, Symbol("flat"), s("const", None, Symbol("Infinity"))))))

        if method == "call":
            return self.process(self.carry(node, s("call", target, None, *args)))

        return next_(node)

    @handles("csend")
    def on_csend(self, node: Node, next_: Next) -> Child:
        self.require_es(2020, node, "safe navigation (&.)")
        return self.on_send(node, next_)
