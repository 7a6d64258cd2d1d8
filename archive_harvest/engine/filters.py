"""Extension based include/exclude filtering of archived URL paths."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Pattern


class FilterCompileError(ValueError):
    """The extension matcher could not be built from the configured tokens."""


@dataclass(frozen=True, slots=True)
class ExtensionFilter:
    """Compiled matcher plus the mode it runs in.

    ``pattern`` is ``None`` when neither list was configured, in which case
    every path passes.
    """

    pattern: Pattern[str] | None = None
    include_mode: bool = False

    def matches(self, path: str) -> bool:
        return self.pattern is not None and self.pattern.search(path) is not None

    def allows(self, path: str) -> bool:
        if self.pattern is None:
            return True
        matched = self.matches(path)
        return matched if self.include_mode else not matched


def _clean_tokens(extensions: Iterable[str] | None) -> list[str]:
    tokens: list[str] = []
    for raw in extensions or ():
        token = raw.strip().lstrip(".").strip()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


def _compile(tokens: list[str]) -> Pattern[str]:
    alternatives = "|".join(re.escape(token) for token in tokens)
    try:
        return re.compile(rf"\.(?:{alternatives})$", re.IGNORECASE)
    except re.error as exc:  # pragma: no cover - escaped tokens always compile
        raise FilterCompileError(f"invalid extension list {tokens!r}: {exc}") from exc


def compile_extension_filter(
    include: Iterable[str] | None = None, exclude: Iterable[str] | None = None
) -> ExtensionFilter:
    """Build a single matcher; a non-empty include list wins over excludes."""

    include_tokens = _clean_tokens(include)
    if include_tokens:
        return ExtensionFilter(pattern=_compile(include_tokens), include_mode=True)
    exclude_tokens = _clean_tokens(exclude)
    if exclude_tokens:
        return ExtensionFilter(pattern=_compile(exclude_tokens), include_mode=False)
    return ExtensionFilter()


__all__ = ["ExtensionFilter", "FilterCompileError", "compile_extension_filter"]
