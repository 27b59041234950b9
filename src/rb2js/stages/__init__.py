"""Plug-in stages and the name table options refer to them by."""

from __future__ import annotations

from typing import Dict, Iterable, List, Type

from ..errors import UnknownStageError
from ..stage import Stage
from .camel_case import CamelCaseStage
from .erb import ErbStage
from .functions import FunctionsStage
from .node import NodeStage

STAGES: Dict[str, Type[Stage]] = {
    "functions": FunctionsStage,
    "node": NodeStage,
    "erb": ErbStage,
    "camelCase": CamelCaseStage,
}

# camelCase renames whatever the other stages emit, so it always runs last.
_RUNS_LAST = ("camelCase",)


def stage_names(names: Iterable[str]) -> List[str]:
    ordered: List[str] = []

    for name in names:
        if name not in STAGES:
            raise UnknownStageError(name)
        if name not in ordered:
            ordered.append(name)

    return [n for n in ordered if n not in _RUNS_LAST] + [n for n in ordered if n in _RUNS_LAST]


def build_stages(names: Iterable[str]) -> List[Stage]:
    """Fresh stage instances, in pipeline order, for one compile."""
    return [STAGES[name]() for name in stage_names(names)]


__all__ = [
    "STAGES",
    "build_stages",
    "stage_names",
    "CamelCaseStage",
    "ErbStage",
    "FunctionsStage",
    "NodeStage",
]
