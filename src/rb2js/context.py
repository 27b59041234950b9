"""Per-compile side-channel registries shared by every stage in a pipeline."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Literal, Optional, Set, Tuple, Union

from .options import CompileOptions
from .tree import Node, node_meta

log = logging.getLogger(__name__)

# `call` would shadow Function.prototype.call, so it needs an explicit opt-in.
DEFAULT_EXCLUDED: Tuple[str, ...] = ("call",)

CommentKey = Tuple[int, int, str]


class HoistList:
    """Declarations to print before the rewritten body, de-duplicated structurally."""

    def __init__(self) -> None:
        self._items: List[Node] = []
        self._seen: Set[Node] = set()

    def push(self, decl: Node) -> bool:
        if decl in self._seen:
            return False

        self._seen.add(decl)
        self._items.append(decl)
        log.debug("hoisted %r", decl)
        return True

    def ordered(self) -> List[Node]:
        """Imports first, everything else after, each group in insertion order."""
        imports = [decl for decl in self._items if decl.kind == "import"]
        others = [decl for decl in self._items if decl.kind != "import"]
        return imports + others

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, decl: object) -> bool:
        return decl in self._seen

    def __repr__(self) -> str:
        return f"HoistList({self._items!r})"


def comment_key(node: Node) -> Optional[CommentKey]:
    meta = node_meta(node)
    if meta is None:
        return None
    return (meta.start_pos, meta.end_pos, node.kind)


class CommentTable:
    """Comments keyed by the source position (and kind) of the node they precede.

    Rewrites that replace a commented node must move its entry with
    ``transfer``/``carry``; nothing re-associates comments afterwards.
    """

    def __init__(self) -> None:
        self._table: Dict[CommentKey, List[str]] = {}

    def attach(self, node: Node, text: str) -> None:
        key = comment_key(node)
        if key is None:
            raise ValueError(f"cannot attach a comment to a node without a position: {node!r}")
        self._table.setdefault(key, []).append(text)

    def get(self, node: Node) -> List[str]:
        key = comment_key(node)
        if key is None:
            return []
        return list(self._table.get(key, ()))

    def has(self, node: Node) -> bool:
        return bool(self.get(node))

    def transfer(self, src: Node, dst: Node) -> None:
        src_key = comment_key(src)
        dst_key = comment_key(dst)

        if src_key is None or src_key == dst_key:
            return

        moved = self._table.pop(src_key, None)
        if not moved:
            return

        if dst_key is None:
            raise ValueError(f"cannot move comments onto a node without a position: {dst!r}")
        self._table.setdefault(dst_key, []).extend(moved)

    def carry(self, original: Node, replacement: Node) -> Node:
        """Return ``replacement`` holding ``original``'s position and comments."""
        if replacement is original:
            return replacement

        if node_meta(replacement) is None and node_meta(original) is not None:
            replacement = replacement.with_meta(node_meta(original))

        self.transfer(original, replacement)
        return replacement

    def entries(self) -> List[Tuple[CommentKey, List[str]]]:
        return sorted((key, list(texts)) for key, texts in self._table.items() if texts)

    def __len__(self) -> int:
        return sum(1 for texts in self._table.values() if texts)

    def __repr__(self) -> str:
        return f"CommentTable({dict(self._table)!r})"


class MethodFilter:
    """Which pre-existing method names a stage may rewrite.

    With an include-only list active, exactly those names are processed;
    otherwise everything except the exclude list is.
    """

    def __init__(self, included: Optional[Iterable[str]] = None,
                 excluded: Iterable[str] = DEFAULT_EXCLUDED) -> None:
        self._included: Optional[List[str]] = list(included) if included is not None else None
        self._excluded: List[str] = list(excluded)

    @classmethod
    def from_options(cls, options: CompileOptions) -> MethodFilter:
        mf = cls()

        if options.include_all:
            mf.include_all()
        if options.include_only is not None:
            mf.include_only(*options.include_only)
        if options.include:
            mf.include(*options.include)
        if options.exclude:
            mf.exclude(*options.exclude)

        return mf

    def excluded(self, method: str) -> bool:
        if self._included is not None:
            return method not in self._included
        return method in self._excluded

    def include_all(self) -> None:
        self._included = None
        self._excluded = []

    def include_only(self, *methods: str) -> None:
        self._included = list(methods)

    def include(self, *methods: str) -> None:
        if self._included is not None:
            self._included += [m for m in methods if m not in self._included]
        else:
            self._excluded = [m for m in self._excluded if m not in methods]

    def exclude(self, *methods: str) -> None:
        if self._included is not None:
            self._included = [m for m in self._included if m not in methods]
        else:
            self._excluded += [m for m in methods if m not in self._excluded]

    def enabled(self) -> Union[Set[str], Literal["all"]]:
        """The include-only set, or ``"all"`` when only exclusions apply."""
        if self._included is not None:
            return set(self._included)
        return "all"

    def __repr__(self) -> str:
        return f"MethodFilter(included={self._included!r}, excluded={self._excluded!r})"


class CompileContext:
    """Everything a compile shares across stages. Build one per compile."""

    def __init__(self, options: Optional[CompileOptions] = None,
                 comments: Optional[CommentTable] = None) -> None:
        self.options = options if options is not None else CompileOptions()
        self.hoisted = HoistList()
        self.comments = comments if comments is not None else CommentTable()
        self.methods = MethodFilter.from_options(self.options)

    def __repr__(self) -> str:
        return f"CompileContext(eslevel={self.options.eslevel}, hoisted={len(self.hoisted)}, comments={len(self.comments)})"
