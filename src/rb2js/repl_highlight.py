"""prompt_toolkit lexer for live s-expression highlighting in the REPL."""

from __future__ import annotations

from typing import Callable

from lark import UnexpectedInput
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .sexp import sexp_lexer

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "boolean": "ansicyan",
    "constant": "ansicyan",
    "number": "ansimagenta",
    "string": "ansigreen",
    "symbol": "ansiyellow",
    "punctuation": "",
    "comment": "italic ansigray",
    "error": "bold ansired",
}

# Terminal name → highlight group.
_TERM_GROUP = {
    "S": "keyword",
    "TRUE": "boolean",
    "FALSE": "boolean",
    "NIL": "constant",
    "NUMBER": "number",
    "STRING": "string",
    "SYMBOL": "symbol",
    "QSYMBOL": "symbol",
    "LPAR": "punctuation",
    "RPAR": "punctuation",
    "COMMA": "punctuation",
    "COMMENT": "comment",
}


def _highlight_line(text: str) -> StyleAndTextTuples:
    """Tokenize a single line and return styled fragments."""
    if not text:
        return [("", "")]

    result: StyleAndTextTuples = []
    pos = 0

    try:
        for tok in sexp_lexer().lex(text, dont_ignore=True):
            start = tok.start_pos
            if start > pos:
                result.append(("", text[pos:start]))

            group = _TERM_GROUP.get(tok.type, "")
            result.append((GROUP_STYLE.get(group, ""), str(tok)))
            pos = start + len(str(tok))
    except UnexpectedInput:
        # unlexable tail; flag it and stop
        result.append((GROUP_STYLE["error"], text[pos:]))
        return result

    if pos < len(text):
        result.append(("", text[pos:]))

    return result if result else [("", text)]


class SexpLexer(Lexer):
    """prompt_toolkit Lexer that highlights s-expressions using the lark lexer."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines

        cache: dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno not in cache:
                if lineno < len(lines):
                    cache[lineno] = _highlight_line(lines[lineno])
                else:
                    cache[lineno] = [("", "")]

            return cache[lineno]

        return get_line
