"""Reader for parser output in ``s(:kind, child, ...)`` notation.

Comments (``# ...``) are kept out of the tree and attached to the first node
that starts after them, giving the initial position-keyed comment table.
"""

from __future__ import annotations

import ast as py_ast
import bisect
import logging
from dataclasses import dataclass
from typing import List, Optional

from lark import Lark, Token, Transformer, UnexpectedInput, v_args

from .context import CommentTable
from .errors import SexpSyntaxError
from .tree import Child, Node, SourcePos, Symbol, walk

log = logging.getLogger(__name__)

SEXP_GRAMMAR = r"""
start: value

?value: node
      | NIL        -> nil
      | TRUE       -> true
      | FALSE      -> false
      | NUMBER     -> number
      | STRING     -> string
      | SYMBOL     -> symbol
      | QSYMBOL    -> qsymbol

node: "s" "(" SYMBOL ("," value)* ","? ")"

NIL: "nil"
TRUE: "true"
FALSE: "false"
NUMBER: /-?\d+(\.\d+)?([eE][-+]?\d+)?/
STRING: /"(\\.|[^"\\])*"/
QSYMBOL: /:"(\\.|[^"\\])*"/
SYMBOL: /:([A-Za-z_@$][A-Za-z0-9_@$]*[?!=]?|\[\]=?|<=>|===?|=~|!=|!~|<<|>>|<=|>=|\*\*|[-+*\/%<>&|^!~])/
COMMENT: /#[^\n]*/

%import common.WS
%ignore WS
%ignore COMMENT
"""

_PARSER: Optional[Lark] = None


def _unquote(raw: str) -> str:
    return py_ast.literal_eval(raw)


class SexpToNode(Transformer):
    def start(self, c):
        return c[0]

    @v_args(meta=True)
    def node(self, meta, c):
        kind = str(c[0])[1:]
        pos = None
        if not getattr(meta, "empty", True):
            pos = SourcePos(meta.line, meta.column, meta.start_pos, meta.end_pos)
        return Node(kind, c[1:], pos)

    def nil(self, _c):
        return None

    def true(self, _c):
        return True

    def false(self, _c):
        return False

    def number(self, c):
        text = str(c[0])
        if any(ch in text for ch in ".eE"):
            return float(text)
        return int(text)

    def string(self, c):
        return _unquote(str(c[0]))

    def symbol(self, c):
        return Symbol(str(c[0])[1:])

    def qsymbol(self, c):
        return Symbol(_unquote(str(c[0])[1:]))


def build_parser(comment_sink: Optional[List[Token]] = None) -> Lark:
    callbacks = {}
    if comment_sink is not None:
        callbacks["COMMENT"] = comment_sink.append

    return Lark(
        SEXP_GRAMMAR,
        parser="lalr",
        lexer="basic",
        start="start",
        maybe_placeholders=False,
        propagate_positions=True,
        lexer_callbacks=callbacks,
    )


def sexp_lexer() -> Lark:
    """Shared parser instance, used for lexing by the REPL highlighter."""
    global _PARSER

    if _PARSER is None:
        _PARSER = build_parser()
    return _PARSER


@dataclass
class ParsedSource:
    tree: Child
    comments: CommentTable
    raw_comments: List[str]


def parse_source(text: str) -> ParsedSource:
    comment_tokens: List[Token] = []
    parser = build_parser(comment_tokens)

    try:
        parse_tree = parser.parse(text)
    except UnexpectedInput as exc:
        message = str(exc).strip().splitlines()[0] if str(exc).strip() else "invalid s-expression"
        raise SexpSyntaxError(message, exc.line, exc.column, getattr(exc, "pos_in_stream", 0) or 0) from None

    tree = SexpToNode().transform(parse_tree)
    comments = associate_comments(tree, comment_tokens)
    raw = [str(tok) for tok in comment_tokens]
    return ParsedSource(tree=tree, comments=comments, raw_comments=raw)


def parse_sexp(text: str) -> Child:
    return parse_source(text).tree


def _comment_text(tok: Token) -> str:
    return str(tok)[1:].strip()


def associate_comments(tree: Child, comment_tokens: List[Token]) -> CommentTable:
    """Attach each comment to the first positioned node starting after it."""
    table = CommentTable()
    nodes = [n for n in walk(tree) if n.meta is not None]
    nodes.sort(key=lambda n: n.meta.start_pos)
    starts = [n.meta.start_pos for n in nodes]

    for tok in comment_tokens:
        idx = bisect.bisect_left(starts, tok.end_pos)

        if idx >= len(nodes):
            log.debug("dropping trailing comment at line %s", tok.line)
            continue

        table.attach(nodes[idx], _comment_text(tok))

    return table
