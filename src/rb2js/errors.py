from __future__ import annotations

from typing import Optional

from .tree import Node, SourcePos, node_meta

# ---------- Exceptions (keep Rb2js* canonical) ----------

class Rb2jsError(Exception):
    """Base class for every error that aborts a compile."""
    pos: Optional[SourcePos]
    node: Optional[Node]

    def __init__(self, message: str, node: Optional[Node] = None, pos: Optional[SourcePos] = None):
        super().__init__(message)
        self.message = message
        self.node = node
        self.pos = pos if pos is not None else node_meta(node)

    @property
    def line(self) -> Optional[int]:
        return self.pos.line if self.pos is not None else None

    @property
    def column(self) -> Optional[int]:
        return self.pos.column if self.pos is not None else None

    def attach_position(self, node: Node) -> bool:
        """Record ``node``'s position if none is known yet. Returns True if attached."""
        if self.pos is not None:
            return False

        meta = node_meta(node)
        if meta is None:
            return False

        self.pos = meta
        if self.node is None:
            self.node = node
        return True

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        msg = self.message

        if self.pos is None:
            return msg

        return f"{msg} (line {self.pos.line}, col {self.pos.column})"

class StructuralError(Rb2jsError):
    """A handler recognized a shape it must refuse."""

class UnsupportedFeatureError(Rb2jsError):
    """A rewrite needs a target feature level the options do not enable."""
    def __init__(self, feature: str, required: int, current: int, node: Optional[Node] = None):
        super().__init__(f"{feature} requires eslevel {required} or later (eslevel is {current})", node)
        self.feature = feature
        self.required = required
        self.current = current

class StateLeakError(Rb2jsError):
    """A stage left transient analysis state pushed after a run."""
    def __init__(self, stage: str, depth: int):
        super().__init__(f"stage {stage!r} finished with {depth} unreleased scope(s)")
        self.stage = stage
        self.depth = depth

class SexpSyntaxError(Rb2jsError):
    def __init__(self, message: str, line: int, column: int, start_pos: int = 0):
        super().__init__(message, pos=SourcePos(line, column, start_pos, start_pos))

class OptionsError(Rb2jsError):
    pass

class UnknownStageError(OptionsError):
    def __init__(self, name: str):
        super().__init__(f"unknown filter: {name}")
        self.name = name
