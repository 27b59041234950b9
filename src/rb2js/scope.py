from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Set

from .tree import Child, Node, Symbol, s

log = logging.getLogger(__name__)

ARG_KINDS = frozenset({"arg", "optarg", "restarg", "kwarg", "kwoptarg", "kwrestarg", "blockarg", "shadowarg"})
ASSIGN_KINDS = frozenset({"lvasgn", "or_asgn", "and_asgn"})
# nested method definitions do not close over the enclosing locals
OPAQUE_KINDS = frozenset({"def", "defs", "class", "module", "sclass"})


def _is_local_name(name: object) -> bool:
    if not isinstance(name, str) or not name:
        return False
    return (name[0].islower() or name[0] == "_") and all(ch.isalnum() or ch == "_" for ch in name)


def import_bindings(decls: Iterable[Node]) -> Set[str]:
    """Names bound by hoisted ``import(path, binding)`` declarations."""
    names: Set[str] = set()

    for decl in decls:
        if decl.kind != "import" or len(decl.children) < 2:
            continue
        binding = decl.children[1]
        if isinstance(binding, Node) and binding.kind in ("attr", "const", "lvar") and binding.children:
            names.add(str(binding.children[-1]))

    return names


class FreeVariables:
    """Names a body reads before (or without) assigning them.

    The walk follows evaluation order: an assignment's value is visited
    before the name becomes bound, and block parameters are bound only inside
    the block. A receiverless, argument-free call to a lowercase name reads a
    local the parser could not see declared.
    """

    def __init__(self, ignore: Optional[Callable[[str], bool]] = None) -> None:
        self.ignore = ignore or (lambda _name: False)
        self.assigned: Set[str] = set()
        self.free: List[str] = []

    def collect(self, node: Child) -> List[str]:
        self.visit(node)
        return list(self.free)

    def read(self, name: str) -> None:
        name = str(name)
        if name in self.assigned or name in self.free or self.ignore(name):
            return
        self.free.append(name)

    def bind(self, name: object) -> None:
        self.assigned.add(str(name))

    def bind_args(self, args: Child) -> None:
        if not isinstance(args, Node):
            return
        for arg in args.children:
            if not isinstance(arg, Node):
                continue
            if arg.kind in ARG_KINDS and arg.children and arg.children[0] is not None:
                self.bind(arg.children[0])
                for default in arg.children[1:]:
                    self.visit(default)
            elif arg.kind in ("mlhs", "procarg0"):
                self.bind_args(arg)

    def visit(self, node: Child) -> None:
        if not isinstance(node, Node):
            return

        kind = node.kind
        ch = node.children

        if kind == "lvar":
            self.read(ch[0])

        elif kind in ASSIGN_KINDS:
            if kind == "lvasgn":
                for value in ch[1:]:
                    self.visit(value)
                self.bind(ch[0])
            else:
                target, value = ch
                if isinstance(target, Node) and target.kind == "lvasgn":
                    self.visit(value)
                    self.bind(target.children[0])
                else:
                    self.visit(target)
                    self.visit(value)

        elif kind == "op_asgn":
            target, _op, value = ch
            if isinstance(target, Node) and target.kind == "lvasgn":
                self.read(target.children[0])
                self.visit(value)
                self.bind(target.children[0])
            else:
                self.visit(target)
                self.visit(value)

        elif kind == "send" and ch[0] is None and len(ch) == 2 and _is_local_name(ch[1]):
            self.read(ch[1])

        elif kind == "block" and len(ch) == 3:
            call, args, body = ch
            if isinstance(call, Node) and call.kind in ("send", "csend"):
                # receiver and arguments only; `lambda { }` and `loop { }` read no local
                for child in (call.children[0], *call.children[2:]):
                    self.visit(child)
            else:
                self.visit(call)
            saved = set(self.assigned)
            try:
                self.bind_args(args)
                self.visit(body)
            finally:
                self.assigned = saved

        elif kind == "for" and len(ch) == 3:
            var, coll, body = ch
            self.visit(coll)
            if isinstance(var, Node) and var.kind == "lvasgn":
                self.bind(var.children[0])
            else:
                self.visit(var)
            self.visit(body)

        elif kind in OPAQUE_KINDS:
            return

        else:
            for child in ch:
                self.visit(child)


def free_variables(body: Child, ignore: Optional[Callable[[str], bool]] = None) -> List[str]:
    """Free names of ``body`` in order of first read."""
    return FreeVariables(ignore).collect(body)


def infer_params(body: Child, fields: Iterable[str] = (),
                 ignore: Optional[Callable[[str], bool]] = None) -> Node:
    """``args(kwarg ...)`` for a body: object fields first, then free locals.

    Both groups are sorted, so two bodies with the same free names always get
    the same signature regardless of the order the names are read in.
    """
    field_names = sorted({str(name) for name in fields})
    locals_ = sorted(name for name in free_variables(body, ignore) if name not in field_names)

    params = field_names + locals_
    log.debug("inferred params: %s", params)
    return s("args", *[s("kwarg", Symbol(name)) for name in params])
