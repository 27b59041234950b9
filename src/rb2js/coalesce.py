"""Output-buffer coalescing.

Template bodies arrive as ``buf += value`` statements, possibly wrapped in
conditionals and loops. Contiguous runs of statements whose only effect is
appending to the buffer are merged into one append of an interpolated
string; conditionals become ternaries and loops become ``map().join("")``
inside the merged value.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Union

from .context import CommentTable, comment_key
from .tree import Child, Node, Symbol, is_send, s, walk

log = logging.getLogger(__name__)

LOOP_METHODS = ("each", "forEach")
STRINGIFY = "String"

# ("text", "abc") or ("expr", node)
Part = Tuple[str, Child]


def is_append(node: Child, bufvar: str) -> bool:
    """``op_asgn(lvasgn(bufvar), :+, value)``"""
    if not (isinstance(node, Node) and node.kind == "op_asgn" and len(node.children) == 3):
        return False

    target, op, _value = node.children
    return (
        isinstance(target, Node)
        and target.kind == "lvasgn"
        and len(target.children) == 1
        and target.children[0] == bufvar
        and op == "+"
    )


def loop_parts(node: Child) -> Optional[Tuple[Child, Node, Child]]:
    """``(collection, args, body)`` for a for-each shaped loop, else None."""
    if not isinstance(node, Node):
        return None

    if node.kind == "block" and len(node.children) == 3:
        call, args, body = node.children
        # `items&.each` skips the loop on nil; `map().join()` would not
        if (is_send(call) and call.kind == "send" and len(call.children) == 2 and call.children[1] in LOOP_METHODS
                and isinstance(args, Node) and args.kind == "args" and args.children):
            return call.children[0], args, body

    if node.kind == "for" and len(node.children) == 3:
        var, coll, body = node.children
        if isinstance(var, Node) and var.kind == "lvasgn" and len(var.children) == 1:
            return coll, s("args", s("arg", var.children[0])), body

    return None


def is_pure_producer(node: Child, bufvar: str) -> bool:
    if not isinstance(node, Node):
        return False

    if is_append(node, bufvar):
        return True

    if node.kind == "begin":
        return bool(node.children) and all(is_pure_producer(ch, bufvar) for ch in node.children)

    if node.kind == "if" and len(node.children) == 3:
        branches = [b for b in node.children[1:] if b is not None]
        return bool(branches) and all(is_pure_producer(b, bufvar) for b in branches)

    loop = loop_parts(node)
    if loop is not None:
        return is_pure_producer(loop[2], bufvar)

    return False


def _strip_stringify(expr: Child) -> Child:
    if is_send(expr, STRINGIFY) and expr.kind == "send" and expr.children[0] is None and len(expr.children) == 3:
        return expr.children[2]
    return expr


def _appended_parts(value: Child) -> List[Part]:
    if isinstance(value, Node) and value.kind == "str":
        return [("text", value.children[0])]

    if isinstance(value, Node) and value.kind == "dstr":
        parts: List[Part] = []
        for piece in value.children:
            if isinstance(piece, Node) and piece.kind == "str":
                parts.append(("text", piece.children[0]))
            elif isinstance(piece, Node) and piece.kind == "begin" and len(piece.children) == 1:
                parts.append(("expr", piece.children[0]))
            else:
                parts.append(("expr", piece))
        return parts

    return [("expr", _strip_stringify(value))]


def producer_parts(node: Node, bufvar: str) -> List[Part]:
    """Flatten a pure producer into literal text and embedded expressions."""
    if is_append(node, bufvar):
        return _appended_parts(node.children[2])

    if node.kind == "begin":
        parts: List[Part] = []
        for child in node.children:
            parts.extend(producer_parts(child, bufvar))
        return parts

    if node.kind == "if":
        cond, then_branch, else_branch = node.children
        ternary = node.updated(children=(cond, inner_value(then_branch, bufvar), inner_value(else_branch, bufvar)))
        return [("expr", ternary)]

    loop = loop_parts(node)
    if loop is None:
        raise ValueError(f"not an output producer: {node!r}")

    coll, args, body = loop
    mapped = s("block", s("send", coll, Symbol("map")), args, inner_value(body, bufvar))
    if node.kind == "block":
        mapped = mapped.with_meta(node.meta)
    return [("expr", s("send", mapped, Symbol("join"), s("str", "")))]


def merge_text(parts: List[Part]) -> List[Part]:
    merged: List[Part] = []

    for kind, value in parts:
        if kind == "text" and merged and merged[-1][0] == "text":
            merged[-1] = ("text", merged[-1][1] + value)
        elif kind == "text" and value == "":
            continue
        else:
            merged.append((kind, value))

    return merged


def build_value(parts: List[Part], bare_expr: bool = False) -> Node:
    """A ``str`` when every part is literal, otherwise a ``dstr``.

    With ``bare_expr`` a lone embedded expression is returned as itself.
    """
    parts = merge_text(parts)

    if not parts:
        return s("str", "")

    if all(kind == "text" for kind, _ in parts):
        return s("str", "".join(value for _, value in parts))

    if bare_expr and len(parts) == 1:
        return parts[0][1]

    pieces = [s("str", value) if kind == "text" else s("begin", value) for kind, value in parts]
    return s("dstr", *pieces)


def inner_value(branch: Child, bufvar: str) -> Child:
    """Reduce a producer branch to the single value it appends."""
    if branch is None:
        return s("str", "")
    return build_value(producer_parts(branch, bufvar), bare_expr=True)


def _first_meta(nodes: List[Node]):
    for stmt in nodes:
        for n in walk(stmt):
            if n.meta is not None:
                return n.meta
    return None


def merge_run(run: List[Node], bufvar: str, comments: Optional[CommentTable] = None) -> Node:
    parts: List[Part] = []
    for stmt in run:
        parts.extend(producer_parts(stmt, bufvar))

    merged = Node("op_asgn", (s("lvasgn", Symbol(bufvar)), Symbol("+"), build_value(parts)), _first_meta(run))
    log.debug("coalesced %d appends to %s", len(run), bufvar)

    if comments is not None:
        _carry_run_comments(comments, run, merged)

    return merged


def _carry_run_comments(comments: CommentTable, run: List[Node], merged: Node) -> None:
    kept = {comment_key(n) for n in walk(merged)}

    for stmt in run:
        for n in walk(stmt):
            key = comment_key(n)
            if key is not None and key not in kept and comments.has(n):
                comments.transfer(n, merged)


def coalesce_sequence(statements: List[Child], bufvar: str,
                      comments: Optional[CommentTable] = None) -> List[Child]:
    """Merge maximal runs (length > 1) of pure producers."""
    out: List[Child] = []
    run: List[Node] = []

    def flush() -> None:
        if len(run) > 1:
            out.append(merge_run(run, bufvar, comments))
        else:
            out.extend(run)
        run.clear()

    for stmt in statements:
        if is_pure_producer(stmt, bufvar):
            run.append(stmt)
        else:
            flush()
            out.append(stmt)

    flush()
    return out


def coalesce_tree(node: Union[Node, Child], bufvar: str, comments: Optional[CommentTable] = None) -> Child:
    """Coalesce every statement sequence in ``node``, innermost first."""
    if not isinstance(node, Node):
        return node

    children = [coalesce_tree(ch, bufvar, comments) for ch in node.children]

    if node.kind == "begin" and len(children) > 1:
        children = coalesce_sequence(children, bufvar, comments)

    return node.with_children(children)


