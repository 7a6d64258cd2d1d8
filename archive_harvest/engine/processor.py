"""Per-line filtering and output-mode transforms for archived URLs."""

from __future__ import annotations

import re
from typing import List
from urllib.parse import SplitResult, unquote_plus, urlsplit, urlunsplit

from ..config import OutputMode
from .filters import ExtensionFilter

_QUERY_SEPARATORS = re.compile(r"[&;]")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def parse_url(line: str) -> SplitResult | None:
    """Split ``line`` into URL parts, ``None`` when it is not a valid URL."""

    try:
        parts = urlsplit(line)
        # Accessing the port validates it; urlsplit alone is lenient here.
        _ = parts.port
    except ValueError:
        return None
    return parts


def unescape_query_key(key: str) -> str:
    """Percent-decode a query key, keeping the raw form on a broken escape."""

    if _BAD_ESCAPE.search(key):
        return key
    return unquote_plus(key, errors="replace")


def query_keys(raw_query: str) -> List[str]:
    keys: List[str] = []
    for pair in _QUERY_SEPARATORS.split(raw_query):
        if not pair:
            continue
        key = pair.split("=", 1)[0]
        if not key:
            continue
        keys.append(unescape_query_key(key))
    return keys


class LineProcessor:
    """Turn one raw CDX line into zero or more derived values.

    Subdomain and path extraction need run-wide state, so for those modes
    the processor only filters and hands the full URL downstream.
    """

    def __init__(self, mode: OutputMode, ext_filter: ExtensionFilter | None = None) -> None:
        self.mode = mode
        self.ext_filter = ext_filter or ExtensionFilter()

    def process(self, line: str) -> List[str]:
        line = line.strip()
        if not line:
            return []

        parts = parse_url(line)
        path = parts.path if parts is not None and parts.path else line
        if not self.ext_filter.allows(path):
            return []

        if self.mode is OutputMode.ONLY_QUERY:
            if parts is not None and parts.query:
                return [parts.query]
            return []

        if self.mode is OutputMode.ONLY_QUERY_KEYS:
            if parts is not None and parts.query:
                return query_keys(parts.query)
            return []

        if self.mode is OutputMode.NO_QUERY:
            # 解析失败的行直接丢弃，避免输出畸形 URL
            if parts is None:
                return []
            return [urlunsplit(parts._replace(query=""))]

        return [line]


__all__ = ["LineProcessor", "parse_url", "query_keys", "unescape_query_key"]
