"""Compile options: target feature level, enabled stages, method deltas."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Tuple, Union

from .errors import OptionsError

ES_LEVELS: Tuple[int, ...] = (2009, 2015, 2016, 2017, 2018, 2019, 2020, 2021, 2022, 2023, 2024, 2025)
DEFAULT_ESLEVEL = 2020
PRESET_ESLEVEL = 2021
PRESET_FILTERS: Tuple[str, ...] = ("functions", "erb")

_MAGIC_FILTERS_RE = re.compile(r"(?<!disable_)filters:\s*?([^\s]+)\s?.*$", re.M)
_MAGIC_ESLEVEL_RE = re.compile(r"eslevel:\s*?([^\s]+)\s?.*$", re.M)
_MAGIC_DISABLE_RE = re.compile(r"disable_filters:\s*?([^\s]+)\s?.*$", re.M)


def normalize_eslevel(value: Union[int, str]) -> int:
    """Accept a year (2015) or an edition number (6 == 2015, 5 == 2009)."""
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise OptionsError(f"invalid eslevel: {value!r}") from None

    if level == 5:
        level = 2009
    elif 6 <= level <= 16:
        level = 2009 + level

    if level not in ES_LEVELS:
        raise OptionsError(f"unsupported eslevel: {value!r}")
    return level


def _names(value: Union[str, Tuple[str, ...], list, None]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(part) for part in value)


@dataclass(frozen=True)
class CompileOptions:
    eslevel: int = DEFAULT_ESLEVEL
    filters: Tuple[str, ...] = ()
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    include_only: Optional[Tuple[str, ...]] = None
    include_all: bool = False
    disable_autoimports: bool = False
    template_globals: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "eslevel", normalize_eslevel(self.eslevel))
        object.__setattr__(self, "filters", _names(self.filters))
        object.__setattr__(self, "include", _names(self.include))
        object.__setattr__(self, "exclude", _names(self.exclude))
        object.__setattr__(self, "template_globals", _names(self.template_globals))
        if self.include_only is not None:
            object.__setattr__(self, "include_only", _names(self.include_only))

    def es(self, level: int) -> bool:
        return self.eslevel >= normalize_eslevel(level)

    def with_overrides(self, **changes: object) -> CompileOptions:
        return replace(self, **changes)


def options_from_env(environ: Optional[Mapping[str, str]] = None, base: Optional[CompileOptions] = None) -> CompileOptions:
    """Defaults from ``RB2JS_ESLEVEL`` and ``RB2JS_FILTERS``."""
    env = os.environ if environ is None else environ
    opts = base if base is not None else CompileOptions()

    level = env.get("RB2JS_ESLEVEL")
    if level:
        opts = opts.with_overrides(eslevel=level)

    filters = env.get("RB2JS_FILTERS")
    if filters:
        opts = opts.with_overrides(filters=filters)

    return opts


def apply_magic_comment(text: str, options: CompileOptions) -> CompileOptions:
    """Apply a leading ``# ruby2js: preset, filters: a,b, eslevel: N`` comment."""
    opts = options

    if " ruby2js: preset" in text:
        filters = list(PRESET_FILTERS)

        match = _MAGIC_FILTERS_RE.search(text)
        if match:
            filters += [name for name in _names(match.group(1).rstrip(",")) if name not in filters]
        else:
            filters += [name for name in opts.filters if name not in filters]

        match = _MAGIC_DISABLE_RE.search(text)
        if match:
            disabled = set(_names(match.group(1).rstrip(",")))
            filters = [name for name in filters if name not in disabled]

        level: Union[int, str] = PRESET_ESLEVEL
        match = _MAGIC_ESLEVEL_RE.search(text)
        if match:
            level = match.group(1).rstrip(",")

        opts = opts.with_overrides(filters=tuple(filters), eslevel=level)

    if " autoimports: false" in text:
        opts = opts.with_overrides(disable_autoimports=True)

    return opts
