"""Interactive REPL for rb2js, powered by prompt_toolkit."""

from __future__ import annotations

import os
import re
import sys
from typing import List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import clear

from .errors import OptionsError, Rb2jsError
from .options import CompileOptions
from .repl_highlight import SexpLexer
from .runner import DEBUG_TRACE_ENV, convert, debug_py_trace_enabled, format_result, report_error
from .stages import STAGES, stage_names

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Slash commands: name => (description, argument_hint).
_SLASH_CMDS = {
    "/clear": ("Clear the terminal screen", ""),
    "/eslevel": ("Show or set the target eslevel", "[N]"),
    "/filters": ("Show or set the enabled filters", "[a,b,...]"),
    "/py-traceback": ("Toggle Python traceback on errors", "[on|off]"),
}


def paren_depth(text: str) -> int:
    """Open-paren depth at the end of ``text``, skipping strings and comments."""
    depth = 0
    in_str = False
    escaped = False
    in_comment = False

    for ch in text:
        if in_comment:
            if ch == "\n":
                in_comment = False
            continue
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue

        if ch == '"':
            in_str = True
        elif ch == "#":
            in_comment = True
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1

    return depth


class _SlashCompleter(Completer):
    """Autocomplete slash commands on the primary prompt."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/"):
            return

        for cmd, (desc, hint) in _SLASH_CMDS.items():
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display_meta=desc,
                )


def _handle_slash(line: str, options_box: List[CompileOptions]) -> bool:
    """Handle slash commands. Returns True if the line was a command."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return False

    parts = stripped.split(None, 1)
    cmd = parts[0]
    arg = parts[1].strip() if len(parts) > 1 else ""

    if cmd == "/clear":
        clear()
        return True

    if cmd == "/filters":
        if arg:
            try:
                names = stage_names(n.strip() for n in arg.split(",") if n.strip())
            except OptionsError as exc:
                print(f"Error: {exc}", file=sys.stderr)
                print(f"Available: {', '.join(STAGES)}", file=sys.stderr)
                return True
            options_box[0] = options_box[0].with_overrides(filters=tuple(names))

        print(f"Filters: {', '.join(options_box[0].filters) or '(none)'}")
        return True

    if cmd == "/eslevel":
        if arg:
            try:
                options_box[0] = options_box[0].with_overrides(eslevel=arg)
            except OptionsError as exc:
                print(f"Error: {exc}", file=sys.stderr)
                return True

        print(f"eslevel: {options_box[0].eslevel}")
        return True

    if cmd == "/py-traceback":
        if arg.lower() in ("on", "1", "true", "yes"):
            os.environ[DEBUG_TRACE_ENV] = "1"
        elif arg.lower() in ("off", "0", "false", "no"):
            os.environ.pop(DEBUG_TRACE_ENV, None)
        elif arg == "":
            # Toggle.
            if debug_py_trace_enabled():
                os.environ.pop(DEBUG_TRACE_ENV, None)
            else:
                os.environ[DEBUG_TRACE_ENV] = "1"
        else:
            print("Usage: /py-traceback [on|off]", file=sys.stderr)
            return True

        state = "on" if debug_py_trace_enabled() else "off"
        print(f"Python traceback: {state}")
        return True

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return True


def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)


def repl(options: Optional[CompileOptions] = None) -> None:
    """Interactive read-compile-print loop with prompt_toolkit."""
    # Use a mutable box so slash commands can swap the options.
    options_box: List[CompileOptions] = [options if options is not None else CompileOptions()]

    history = InMemoryHistory()
    lexer = SexpLexer()

    bindings = KeyBindings()

    @bindings.add("backspace")
    def _backspace(event):
        buf = event.app.current_buffer
        buf.delete_before_cursor(1)
        if buf.text.startswith("/"):
            buf.start_completion()

    @bindings.add("enter")
    def _enter(event):
        buf = event.app.current_buffer
        text = buf.text

        # Accept once every paren is closed; keep reading otherwise.
        if text.startswith("/") or paren_depth(text) <= 0:
            buf.validate_and_handle()
            return

        buf.insert_text("\n  ")

    session: PromptSession[str] = PromptSession(
        history=history,
        lexer=lexer,
        completer=_SlashCompleter(),
        complete_while_typing=True,
        key_bindings=bindings,
        multiline=True,
        prompt_continuation="... ",
    )

    print("rb2js repl - Ctrl-D to exit, / for commands")

    while True:
        try:
            text = session.prompt(">>> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        # Slash command?
        if _handle_slash(text, options_box):
            continue

        try:
            result = convert(text, options_box[0])
        except Rb2jsError as exc:
            report_error(exc)
            continue

        print(format_result(result))
