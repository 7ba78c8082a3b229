"""
URL predicates for navigation waits: any URL, a glob, a compiled regex, or a callable.
"""
# @file purpose: Match URLs against glob / regex / predicate patterns.

from __future__ import annotations

import re
from typing import Callable, Optional, Pattern, Union

URLMatch = Union[str, Pattern[str], Callable[[str], bool]]

_ESCAPE_GLOB_CHARS = set("/$^+.()=!|")


def glob_to_regex(glob: str) -> str:
    """
    Translate a URL glob to a regex:
    - ``*`` matches within one path segment, ``**`` across segments
    - ``?`` matches one character
    - ``{a,b}`` matches either alternative
    """
    tokens = ["^"]
    in_group = False
    i = 0
    while i < len(glob):
        c = glob[i]
        if c == "\\" and i + 1 < len(glob):
            tokens.append("\\" + glob[i + 1])
            i += 2
            continue
        if c in _ESCAPE_GLOB_CHARS:
            tokens.append("\\" + c)
            i += 1
            continue
        if c == "*":
            before_deep = i < 1 or glob[i - 1] == "/"
            star_count = 1
            while i + 1 < len(glob) and glob[i + 1] == "*":
                star_count += 1
                i += 1
            after_deep = i + 1 >= len(glob) or glob[i + 1] == "/"
            if star_count > 1 and before_deep and after_deep:
                tokens.append("((?:[^/]*(?:/|$))*)")
                i += 1
            else:
                tokens.append("([^/]*)")
            i += 1
            continue
        if c == "?":
            tokens.append(".")
        elif c == "{":
            in_group = True
            tokens.append("(")
        elif c == "}":
            in_group = False
            tokens.append(")")
        elif c == ",":
            tokens.append("|" if in_group else "\\,")
        else:
            tokens.append(re.escape(c))
        i += 1
    tokens.append("$")
    return "".join(tokens)


class URLMatcher:
    def __init__(self, match: Optional[URLMatch] = None) -> None:
        self._match = match
        self._regex: Optional[Pattern[str]] = None
        if isinstance(match, str):
            self._regex = re.compile(glob_to_regex(match))
        elif isinstance(match, re.Pattern):
            self._regex = match
        elif match is not None and not callable(match):
            raise TypeError(f"url must be str, re.Pattern or callable, got {type(match).__name__}")

    def matches(self, url: str) -> bool:
        if self._match is None:
            return True
        if self._regex is not None:
            return self._regex.search(url) is not None
        return bool(self._match(url))  # type: ignore[operator]

    def __repr__(self) -> str:
        if self._match is None:
            return "<any url>"
        if isinstance(self._match, re.Pattern):
            return f"/{self._match.pattern}/"
        if isinstance(self._match, str):
            return repr(self._match)
        return "<predicate>"
