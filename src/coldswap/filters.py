"""Glob-based include/exclude filtering of changed paths."""

import logging
import re
from pathlib import PurePath

logger = logging.getLogger(__name__)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a glob expression into a compiled, fully anchored regex.

    Supported syntax:
    - ``*`` matches within one path segment
    - ``**`` matches across segments; ``**/`` may also match nothing
    - ``?`` matches one character other than ``/``
    - ``[abc]`` / ``[!abc]`` character classes
    - ``{a,b}`` alternation
    """
    out: list[str] = []
    i = 0
    n = len(pattern)
    depth = 0  # open "{" groups

    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            start = i + 2 if pattern.startswith("[!", i) else i + 1
            # a "]" right after the opening bracket is literal
            end = pattern.find("]", start + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                body = body.replace("\\", "\\\\")
                out.append(f"[{body}]")
                i = end
        elif c == "{":
            depth += 1
            out.append("(?:")
        elif c == "}" and depth:
            depth -= 1
            out.append(")")
        elif c == "," and depth:
            out.append("|")
        else:
            out.append(re.escape(c))
        i += 1

    out.extend(")" * depth)
    return re.compile("".join(out), re.DOTALL)


def split_expressions(expressions: str) -> list[str]:
    """Split on commas that are not inside a ``{...}`` group; drop blanks."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    for c in expressions:
        if c == "," and not depth:
            parts.append("".join(current))
            current = []
            continue
        if c == "{":
            depth += 1
        elif c == "}" and depth:
            depth -= 1
        current.append(c)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


class PathFilter:
    """A disjunction of glob expressions.

    Built from a comma separated expression string such as
    ``"**/*.class,**/*.conf"``. Commas inside ``{a,b}`` belong
    to the alternation. An empty string yields the zero matcher,
    which matches nothing.
    """

    def __init__(self, expressions: str = ""):
        self.expressions = expressions
        self.patterns = split_expressions(expressions)
        self._regexes = [glob_to_regex(p) for p in self.patterns]

    def matches(self, path: str | PurePath) -> bool:
        """Return True if any sub-pattern matches ``path``."""
        candidate = PurePath(path).as_posix() if isinstance(path, PurePath) else path.replace("\\", "/")
        return any(regex.fullmatch(candidate) for regex in self._regexes)

    def __bool__(self) -> bool:
        return bool(self._regexes)

    def __str__(self) -> str:
        return f"[{self.expressions}]"

    def __repr__(self) -> str:
        return f"PathFilter({self.expressions!r})"


def is_relevant(path: str | PurePath, includes: PathFilter, excludes: PathFilter) -> bool:
    """Check a relative path against both filters. Exclusion always wins."""
    if not includes.matches(path):
        logger.debug(f"Ignoring {path}: no match in {includes}")
        return False
    if excludes.matches(path):
        logger.debug(f"Ignoring {path}: excluded by {excludes}")
        return False
    return True
