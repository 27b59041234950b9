"""Stage authoring contract.

A stage is a class whose handler methods are marked with ``@handles``. The
pipeline collects them once, chains them per node kind in pipeline order and
calls each as ``handler(node, next_)``, where ``next_`` runs the rest of the
chain (ending in generic child recursion). A handler either returns
``next_(node)`` untouched, rewrites and re-enters with ``self.process``, or
returns a finished replacement.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, Iterable, Iterator, List, Optional, Tuple

from .context import CompileContext, CommentTable, HoistList
from .errors import StructuralError, UnsupportedFeatureError
from .options import CompileOptions, normalize_eslevel
from .tree import Child, Node, s

if TYPE_CHECKING:
    from .dispatch import Dispatcher

log = logging.getLogger(__name__)

Next = Callable[[Node], Child]
Handler = Callable[[Node, Next], Child]

_KINDS_ATTR = "_rb2js_kinds"


def handles(*kinds: str) -> Callable[[Callable[..., Child]], Callable[..., Child]]:
    """Register the decorated method as this stage's handler for ``kinds``."""
    def dec(fn: Callable[..., Child]) -> Callable[..., Child]:
        setattr(fn, _KINDS_ATTR, tuple(getattr(fn, _KINDS_ATTR, ())) + tuple(kinds))
        return fn

    return dec


class Stage:
    """Base class for transformation stages."""

    name: ClassVar[str] = "stage"

    def __init__(self) -> None:
        self._dispatcher: Optional[Dispatcher] = None
        self._context: Optional[CompileContext] = None
        self._scope_depth = 0

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

    # ---- wiring (pipeline only) ----

    def handlers(self) -> Dict[str, Handler]:
        """Kind -> bound handler, read off ``@handles`` marks on the class."""
        table: Dict[str, Handler] = {}

        for klass in reversed(type(self).__mro__):
            for attr, fn in vars(klass).items():
                kinds = getattr(fn, _KINDS_ATTR, None)
                if not kinds:
                    continue
                bound = getattr(self, attr)
                for kind in kinds:
                    table[kind] = bound

        return table

    def bind(self, dispatcher: Dispatcher, context: CompileContext) -> None:
        if self._dispatcher is not None:
            raise RuntimeError(f"{self!r} is already part of a pipeline")
        self._dispatcher = dispatcher
        self._context = context

    # ---- hooks ----

    def initialize(self) -> None:
        """Called once per compile before any node is processed."""

    def finalize(self, tree: Child) -> Child:
        """Called once per compile after the whole tree is processed."""
        return tree

    # ---- re-entry ----

    @property
    def dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            raise RuntimeError(f"{self!r} is not bound to a pipeline")
        return self._dispatcher

    def process(self, node: Child) -> Child:
        """Run ``node`` through the whole pipeline from the first stage."""
        return self.dispatcher.process(node)

    def process_all(self, nodes: Iterable[Child]) -> List[Child]:
        return [self.process(node) for node in nodes]

    def process_children(self, node: Node) -> Node:
        return self.dispatcher.process_children(node)

    # ---- shared registries ----

    @property
    def context(self) -> CompileContext:
        if self._context is None:
            raise RuntimeError(f"{self!r} is not bound to a pipeline")
        return self._context

    @property
    def options(self) -> CompileOptions:
        return self.context.options

    @property
    def comments(self) -> CommentTable:
        return self.context.comments

    @property
    def hoisted(self) -> HoistList:
        return self.context.hoisted

    def hoist(self, decl: Node) -> bool:
        return self.context.hoisted.push(decl)

    def carry(self, original: Node, replacement: Child) -> Child:
        if not isinstance(replacement, Node):
            return replacement
        return self.context.comments.carry(original, replacement)

    def excluded(self, method: str) -> bool:
        return self.context.methods.excluded(method)

    def es(self, level: int) -> bool:
        return self.options.es(level)

    def require_es(self, level: int, node: Node, feature: str) -> None:
        required = normalize_eslevel(level)
        if self.options.eslevel < required:
            raise UnsupportedFeatureError(feature, required, self.options.eslevel, node)

    def reject(self, node: Node, message: str) -> None:
        raise StructuralError(message, node)

    def s(self, kind: str, *children: Child) -> Node:
        return s(kind, *children)

    # ---- transient analysis state ----

    @property
    def scope_depth(self) -> int:
        return self._scope_depth

    @contextmanager
    def scoped(self, **fields: Any) -> Iterator[None]:
        """Install ``fields`` as attributes for the duration of the block.

        Previous values come back on exit, including exits by exception, so
        sibling subtrees never observe each other's state.
        """
        saved: List[Tuple[str, Any]] = [(name, getattr(self, name)) for name in fields]

        for name, value in fields.items():
            setattr(self, name, value)
        self._scope_depth += 1

        try:
            yield
        finally:
            self._scope_depth -= 1
            for name, value in saved:
                setattr(self, name, value)
