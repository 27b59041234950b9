"""snake_case names to camelCase, after every other stage has run."""

from __future__ import annotations

import re

from ..scope import import_bindings
from ..stage import Next, Stage, handles
from ..tree import Child, Node, Symbol

ALLOWLIST = frozenset({
    "attr_accessor",
    "attr_reader",
    "attr_writer",
    "method_missing",
    "is_a?",
    "kind_of?",
    "instance_of?",
})

CAPS_EXCEPTIONS = {
    "innerHtml": "innerHTML",
    "innerHtml=": "innerHTML=",
    "outerHtml": "outerHTML",
    "outerHtml=": "outerHTML=",
    "encodeUri": "encodeURI",
    "encodeUriComponent": "encodeURIComponent",
    "decodeUri": "decodeURI",
    "decodeUriComponent": "decodeURIComponent",
}

_INNER_UNDERSCORE = re.compile(r"(?!^)_[a-z0-9]")
_SEND_CANDIDATE = re.compile(r"_.*\w[=!?]?$")
_NAME_CANDIDATE = re.compile(r"_.*[?!\w]$")

# first child is the name
NAMED_KINDS = ("lvar", "ivar", "cvar", "arg", "optarg", "kwarg", "kwoptarg",
               "lvasgn", "ivasgn", "cvasgn", "def", "sym", "match_var")


def camel_case(name: str) -> str:
    if name in ALLOWLIST:
        return name

    prefix = ""
    # @ivar / @@cvar sigils and leading underscores stay as they are
    while name[:1] in ("@", "_") and len(name) > 1:
        prefix += name[0]
        name = name[1:]

    converted = _INNER_UNDERSCORE.sub(lambda m: m.group(0)[1].upper(), name)
    converted = prefix + converted
    return CAPS_EXCEPTIONS.get(converted, converted)


class CamelCaseStage(Stage):
    name = "camelCase"

    def keep(self, name: str) -> bool:
        return name in ALLOWLIST or name in import_bindings(self.hoisted)

    def rename(self, name: object) -> object:
        if not isinstance(name, str) or self.keep(name):
            return name
        return Symbol(camel_case(name)) if isinstance(name, Symbol) else camel_case(name)

    @handles("send", "csend", "attr")
    def on_send(self, node: Node, next_: Next) -> Child:
        node = next_(node)
        if not isinstance(node, Node) or node.kind not in ("send", "csend", "attr") or len(node.children) < 2:
            return node

        target, method = node.children[0], node.children[1]

        if target is None and method in ALLOWLIST:
            return node
        if not isinstance(method, str) or not _SEND_CANDIDATE.search(method):
            return node

        return node.with_children((target, self.rename(method), *node.children[2:]))

    @handles(*NAMED_KINDS)
    def on_named(self, node: Node, next_: Next) -> Child:
        kind = node.kind
        node = next_(node)
        if not isinstance(node, Node) or node.kind != kind or not node.children:
            return node

        name = node.children[0]
        if not isinstance(name, str) or not _NAME_CANDIDATE.search(name):
            return node

        return node.with_children((self.rename(name), *node.children[1:]))

    @handles("defs")
    def on_defs(self, node: Node, next_: Next) -> Child:
        node = next_(node)
        if not isinstance(node, Node) or node.kind != "defs" or len(node.children) < 2:
            return node

        name = node.children[1]
        if not isinstance(name, str) or not _NAME_CANDIDATE.search(name):
            return node

        return node.with_children((node.children[0], self.rename(name), *node.children[2:]))
