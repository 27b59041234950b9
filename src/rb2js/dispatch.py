from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import Rb2jsError
from .stage import Handler, Next, Stage
from .tree import Child, Node

log = logging.getLogger(__name__)

# Synthetic and variant kinds fall back to the handler a stage registered for
# the base kind, unless the stage registers the variant itself.
KIND_ALIASES: Dict[str, str] = {
    'csend': 'send',
    'call': 'send',
    'attr': 'send',
    'await': 'send',
    'sendw': 'send',
    'send!': 'send',
    'method': 'send',
    'class_extend': 'send',
    'class_module': 'send',
    'in?': 'send',
    'instanceof': 'send',
    'async': 'def',
    'constructor': 'def',
    'deff': 'def',
    'asyncs': 'defs',
    'defm': 'defs',
    'defp': 'defs',
    'class_hash': 'class',
    'module_hash': 'module',
    'for_of': 'for',
    'autoreturn': 'return',
    'nullish_or': 'or',
    'logical_or': 'or',
    'nullish_asgn': 'or_asgn',
    'logical_asgn': 'or_asgn',
    'prototype': 'begin',
    'hide': 'begin',
    'kwbegin': 'begin',
    'prop': 'array',
    'undefined?': 'defined?',
    'taglit': 'pair',
}


def _stage_handler(table: Mapping[str, Handler], kind: str) -> Optional[Handler]:
    handler = table.get(kind)
    if handler is None and kind in KIND_ALIASES:
        handler = table.get(KIND_ALIASES[kind])
    return handler


def collect_chains(stages: Sequence[Stage]) -> Dict[str, List[Tuple[Stage, Handler]]]:
    """Kind -> [(stage, handler), ...] in pipeline order."""
    tables = [(stage, stage.handlers()) for stage in stages]

    kinds = set()
    for _stage, table in tables:
        kinds.update(table)
    kinds.update(alias for alias, base in KIND_ALIASES.items() if base in kinds)

    chains: Dict[str, List[Tuple[Stage, Handler]]] = {}

    for kind in sorted(kinds):
        entries = []
        for stage, table in tables:
            handler = _stage_handler(table, kind)
            if handler is not None:
                entries.append((stage, handler))
        if entries:
            chains[kind] = entries

    return chains


def _link(handler: Handler, next_: Next) -> Next:
    def step(node: Node) -> Child:
        return handler(node, next_)

    return step


class Dispatcher:
    """Walks a tree, entering the handler chain registered for each node kind.

    Kinds without a chain get generic recursion: children are processed and
    the node is rebuilt only if one of them changed.
    """

    def __init__(self, chains: Mapping[str, Sequence[Tuple[Stage, Handler]]]) -> None:
        self._entries: Dict[str, Next] = {}

        for kind, entries in chains.items():
            entry: Next = self.process_children
            for _stage, handler in reversed(entries):
                entry = _link(handler, entry)
            self._entries[kind] = entry

        self.chains = {kind: tuple(stage.name for stage, _ in entries) for kind, entries in chains.items()}
        log.debug("handler chains: %s", self.chains)

    def handles(self, kind: str) -> bool:
        return kind in self._entries

    def process(self, node: Child) -> Child:
        if not isinstance(node, Node):
            return node

        try:
            entry = self._entries.get(node.kind)
            if entry is None:
                return self.process_children(node)
            return entry(node)
        except Rb2jsError as exc:
            exc.attach_position(node)
            raise

    def process_children(self, node: Node) -> Node:
        if not isinstance(node, Node):
            return node

        children = node.children
        new_children = None

        for idx, child in enumerate(children):
            if not isinstance(child, Node):
                continue

            result = self.process(child)

            if result is not child:
                if new_children is None:
                    new_children = list(children)
                new_children[idx] = result

        if new_children is None:
            return node
        return node.with_children(new_children)

