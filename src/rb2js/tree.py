"""Immutable tagged tree nodes shared by every stage.

Shapes follow what a Ruby parser produces (``send``, ``lvar``, ``dstr``...),
so stages written against one producer work on trees from any other.
"""
from __future__ import annotations

from typing import Any, Iterable, Iterator, List, NamedTuple, Optional, Set, Tuple, Union
from typing_extensions import TypeAlias, TypeGuard


class Symbol(str):
    """A Ruby symbol (method or variable name).

    Subclasses str so names compare equal to plain strings in handler code;
    only printing distinguishes ``:name`` from ``"name"``.
    """
    __slots__ = ()

    def __repr__(self) -> str:
        if self and (self[0].isalpha() or self[0] in "_@$") and all(ch.isalnum() or ch in "_@$?!=" for ch in self):
            return f":{str(self)}"
        return f":{str.__repr__(self)}"


sym = Symbol


class SourcePos(NamedTuple):
    line: int
    column: int
    start_pos: int
    end_pos: int


Child: TypeAlias = Union["Node", str, int, float, bool, None]


def _same_child(a: Child, b: Child) -> bool:
    if a is b:
        return True
    # 1 == True in Python; literal children of different types are different
    return type(a) is type(b) and a == b


class Node:
    """A kind tag plus an ordered tuple of children.

    Nodes are immutable; ``meta`` carries the source position and is ignored
    by equality and hashing.
    """
    __slots__ = ('kind', 'children', 'meta', '_hash')

    kind: str
    children: Tuple[Child, ...]
    meta: Optional[SourcePos]

    def __init__(self, kind: str, children: Iterable[Child] = (), meta: Optional[SourcePos] = None):
        object.__setattr__(self, 'kind', str(kind))
        object.__setattr__(self, 'children', tuple(children))
        object.__setattr__(self, 'meta', meta)
        object.__setattr__(self, '_hash', None)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Node is immutable; cannot set {name!r}")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Node is immutable; cannot delete {name!r}")

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Node):
            return False
        if self.kind != other.kind or len(self.children) != len(other.children):
            return False
        return all(_same_child(a, b) for a, b in zip(self.children, other.children))

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        h = self._hash
        if h is None:
            h = hash((self.kind, self.children))
            object.__setattr__(self, '_hash', h)
        return h

    def __repr__(self) -> str:
        return to_sexp(self, pretty=False)

    def with_children(self, children: Iterable[Child]) -> Node:
        """Return a node of the same kind with new children.

        Returns ``self`` when the new children match the old ones element-wise.
        """
        new_children = tuple(children)
        old = self.children

        if len(new_children) == len(old) and all(_same_child(a, b) for a, b in zip(new_children, old)):
            return self

        return Node(self.kind, new_children, self.meta)

    def updated(self, kind: Optional[str] = None, children: Optional[Iterable[Child]] = None,
                meta: Optional[SourcePos] = None) -> Node:
        """Copy with a new kind and/or children, keeping the source position."""
        return Node(
            kind if kind is not None else self.kind,
            children if children is not None else self.children,
            meta if meta is not None else self.meta,
        )

    def with_meta(self, meta: Optional[SourcePos]) -> Node:
        if meta == self.meta:
            return self
        return Node(self.kind, self.children, meta)


def s(kind: str, *children: Child) -> Node:
    """Construct a node: ``s('send', None, sym('puts'), s('str', 'hi'))``."""
    return Node(kind, children)


def node_children(value: object) -> Tuple[Child, ...]:
    if not isinstance(value, Node):
        return ()
    return value.children

def node_meta(value: object) -> Optional[SourcePos]:
    return getattr(value, "meta", None)

def find_node_by_kind(node: Child, kinds: Iterable[str]) -> Optional[Node]:
    lookup: Set[str] = set(kinds)

    if isinstance(node, Node) and node.kind in lookup:
        return node

    for child in node_children(node):
        found = find_node_by_kind(child, lookup)
        if found is not None:
            return found

    return None

def walk(node: Child) -> Iterator[Node]:
    """Pre-order iteration over every node in the tree."""
    stack: List[Child] = [node]

    while stack:
        cur = stack.pop()
        if isinstance(cur, Node):
            yield cur
            stack.extend(reversed(cur.children))


def is_send(node: Child, method: Optional[str] = None) -> TypeGuard[Node]:
    if not (isinstance(node, Node) and node.kind in ('send', 'csend')):
        return False
    return method is None or node.children[1] == method


# ---------------- printing ----------------

def _atom(value: Child) -> str:
    if value is None:
        return "nil"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, Symbol):
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
        return f'"{escaped}"'
    return repr(value)


def to_sexp(node: Child, indent: str = '  ', pretty: bool = True, _level: int = 0) -> str:
    """Render a tree in ``s(:kind, ...)`` notation.

    Flat nodes print on one line; nodes with node children nest one per line
    when ``pretty`` is set.
    """
    if not isinstance(node, Node):
        return _atom(node)

    head = f"s(:{node.kind}"
    if not node.children:
        return head + ")"

    if not pretty or not any(isinstance(ch, Node) for ch in node.children):
        return head + ", " + ", ".join(to_sexp(ch, indent, False) for ch in node.children) + ")"

    pad = indent * (_level + 1)
    parts = [pad + to_sexp(ch, indent, True, _level + 1) for ch in node.children]
    return head + ",\n" + ",\n".join(parts) + ")"
