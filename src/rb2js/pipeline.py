"""Pipeline driver: one ordered list of stages, one context, one run."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .context import CommentTable, CompileContext
from .dispatch import Dispatcher, collect_chains
from .errors import StateLeakError
from .options import CompileOptions
from .stage import Stage
from .tree import Child, Node

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileResult:
    tree: Child                 # body with hoisted declarations prepended
    body: Child                 # body as the stages left it
    hoisted: Tuple[Node, ...]   # what was prepended, in print order
    comments: CommentTable


class Pipeline:
    """Ordered composition of stages over a shared ``CompileContext``.

    Earlier stages see each node first; each handler's ``next_`` reaches the
    next stage registered for that kind, and the last one falls through to
    generic child recursion. A pipeline owns per-compile state, so it runs
    exactly once.
    """

    def __init__(self, stages: Sequence[Stage], options: Optional[CompileOptions] = None,
                 context: Optional[CompileContext] = None) -> None:
        if context is None:
            context = CompileContext(options)
        elif options is not None and options is not context.options:
            raise ValueError("pass options either directly or through the context, not both")

        self.stages: List[Stage] = list(stages)
        self.context = context
        self.dispatcher = Dispatcher(collect_chains(self.stages))
        self._ran = False

        for stage in self.stages:
            stage.bind(self.dispatcher, self.context)

        log.debug("pipeline: %s", [stage.name for stage in self.stages])

    @property
    def options(self) -> CompileOptions:
        return self.context.options

    def process(self, node: Child) -> Child:
        return self.dispatcher.process(node)

    def run(self, tree: Child) -> CompileResult:
        if self._ran:
            raise RuntimeError("a Pipeline runs once; build a new one for each compile")
        self._ran = True

        for stage in self.stages:
            log.debug("initialize %s", stage.name)
            stage.initialize()

        body = self.dispatcher.process(tree)

        for stage in self.stages:
            log.debug("finalize %s", stage.name)
            body = stage.finalize(body)

        self.check_balanced()

        hoisted = self._hoisted_for_output()
        return CompileResult(
            tree=self._prepend(body, hoisted),
            body=body,
            hoisted=hoisted,
            comments=self.context.comments,
        )

    def check_balanced(self) -> None:
        for stage in self.stages:
            if stage.scope_depth != 0:
                raise StateLeakError(stage.name, stage.scope_depth)

    def _hoisted_for_output(self) -> Tuple[Node, ...]:
        prepend = self.context.hoisted.ordered()

        if self.options.disable_autoimports:
            prepend = [decl for decl in prepend if decl.kind != "import"]

        return tuple(prepend)

    @staticmethod
    def _prepend(body: Child, hoisted: Tuple[Node, ...]) -> Child:
        if not hoisted:
            return body
        if body is None:
            return Node("begin", hoisted)
        return Node("begin", hoisted + (body,))
