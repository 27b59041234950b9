from __future__ import annotations

import logging
import os
import sys
import traceback
from pathlib import Path
from typing import Iterator, List, Optional

from .context import CommentTable, CompileContext
from .errors import OptionsError, Rb2jsError
from .options import CompileOptions, apply_magic_comment, options_from_env
from .pipeline import CompileResult, Pipeline
from .sexp import parse_source
from .stages import build_stages
from .tree import Child, to_sexp

log = logging.getLogger(__name__)

DEBUG_TRACE_ENV = "RB2JS_DEBUG_PY_TRACE"


def debug_py_trace_enabled() -> bool:
    return os.environ.get(DEBUG_TRACE_ENV, "") not in ("", "0")


def compile_tree(tree: Child, options: Optional[CompileOptions] = None,
                 comments: Optional[CommentTable] = None) -> CompileResult:
    """Run the stages ``options.filters`` names over an already parsed tree."""
    opts = options if options is not None else CompileOptions()
    context = CompileContext(opts, comments)
    pipeline = Pipeline(build_stages(opts.filters), context=context)
    return pipeline.run(tree)


def convert(source: str, options: Optional[CompileOptions] = None) -> CompileResult:
    """Parse s-expression source and compile it.

    A magic comment on the first comment line can switch on the preset and
    adjust filters and eslevel.
    """
    parsed = parse_source(source)
    opts = options if options is not None else options_from_env()

    if parsed.raw_comments:
        opts = apply_magic_comment(parsed.raw_comments[0], opts)

    return compile_tree(parsed.tree, opts, parsed.comments)


def format_result(result: CompileResult) -> str:
    out = [to_sexp(result.tree)]

    entries = result.comments.entries()
    if entries:
        out.append("")
        for (start, end, kind), texts in entries:
            for text in texts:
                out.append(f"# {kind}@{start}..{end}: {text}")

    return "\n".join(out)


def _load_source(arg: Optional[str]) -> str:
    """
    Resolve CLI input into source text.
    - None or "-" => read stdin.
    - Existing path => read file contents.
    - Otherwise treat the argument as a literal s-expression.
    """

    if arg is None or arg == "-":
        data = sys.stdin.read()
        if not data:
            raise SystemExit("No input provided on stdin")
        return data

    candidate = Path(arg)
    if candidate.exists():
        return candidate.read_text(encoding="utf-8")

    return arg


def _flag_value(token: str, it: Iterator[str]) -> str:
    if "=" in token:
        return token.split("=", 1)[1]
    try:
        return next(it)
    except StopIteration:
        raise SystemExit(f"{token} flag requires a value") from None


def parse_args(argv: List[str], base: Optional[CompileOptions] = None):
    """Hand-rolled flag parsing. Returns ``(options, source_arg, repl, verbose)``."""
    opts = base if base is not None else options_from_env()
    filters: List[str] = []
    include: List[str] = []
    exclude: List[str] = []
    include_only: Optional[List[str]] = None
    changes = {}
    arg = None
    repl = False
    verbose = False
    it = iter(argv)

    for token in it:
        name = token.split("=", 1)[0]

        if name == "--filter":
            filters.extend(_flag_value(token, it).split(","))
            continue
        if name == "--eslevel":
            changes["eslevel"] = _flag_value(token, it)
            continue
        if name == "--include":
            include.extend(_flag_value(token, it).split(","))
            continue
        if name == "--exclude":
            exclude.extend(_flag_value(token, it).split(","))
            continue
        if name == "--include-only":
            include_only = (include_only or []) + _flag_value(token, it).split(",")
            continue
        if token == "--include-all":
            changes["include_all"] = True
            continue
        if token == "--disable-autoimports":
            changes["disable_autoimports"] = True
            continue
        if token == "--verbose":
            verbose = True
            continue
        if token == "--repl":
            repl = True
            continue

        if token.startswith("--"):
            raise SystemExit(f"Unknown flag: {token}")

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    if filters:
        changes["filters"] = tuple(f for f in filters if f)
    if include:
        changes["include"] = tuple(include)
    if exclude:
        changes["exclude"] = tuple(exclude)
    if include_only is not None:
        changes["include_only"] = tuple(include_only)

    if changes:
        opts = opts.with_overrides(**changes)

    return opts, arg, repl, verbose


def report_error(exc: BaseException) -> None:
    print(f"error: {exc}", file=sys.stderr)

    if debug_py_trace_enabled():
        print("\nPython traceback:", file=sys.stderr)
        print("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)), file=sys.stderr, end="")


def main() -> None:
    try:
        options, arg, want_repl, verbose = parse_args(sys.argv[1:])
    except OptionsError as exc:
        report_error(exc)
        raise SystemExit(1) from None

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if want_repl:
        from .repl import repl

        repl(options)
        return

    source = _load_source(arg or "-")

    try:
        result = convert(source, options)
    except Rb2jsError as exc:
        report_error(exc)
        raise SystemExit(1) from None

    print(format_result(result))


if __name__ == "__main__":
    main()
