"""Include/exclude rules deciding which notes are tracked."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Pattern, Sequence

from noteviews.errors import filter_config_error
from noteviews.models import DocumentRef, FilterRules

LOGGER = logging.getLogger(__name__)


def compile_pattern(pattern: str) -> Pattern[str]:
    """Compile a glob-like vault path pattern into an anchored regex.

    ``*`` matches any run of characters (including ``/``) and ``?`` a single
    character. Patterns are anchored at the start unless they begin with
    ``*`` and at the end unless they finish with ``*``.
    """
    if not pattern or not pattern.strip():
        raise filter_config_error(pattern, "pattern is empty")

    regex = (
        pattern.replace(".", r"\.")
        .replace("*", ".*")
        .replace("?", ".")
        .replace("/", r"\/")
    )
    if not pattern.endswith("*"):
        regex += "$"
    if not pattern.startswith("*"):
        regex = "^" + regex

    try:
        return re.compile(regex)
    except re.error as exc:
        raise filter_config_error(pattern, str(exc)) from exc


def _compile_all(patterns: Iterable[str]) -> List[Pattern[str]]:
    return [compile_pattern(pattern) for pattern in patterns]


def _dedupe(patterns: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for pattern in patterns:
        if pattern not in seen:
            seen.append(pattern)
    return seen


class PathFilter:
    """Pure string predicate over vault-relative note paths.

    Exclude rules always win. With no include rules every non-excluded path
    is in scope. Patterns are compiled when rules change, never per lookup.
    """

    def __init__(self, rules: FilterRules | None = None) -> None:
        self._include: List[str] = []
        self._exclude: List[str] = []
        self._include_regex: List[Pattern[str]] = []
        self._exclude_regex: List[Pattern[str]] = []
        if rules is not None:
            self.update_from_rules(rules)

    @property
    def rules(self) -> FilterRules:
        return FilterRules(tuple(self._include), tuple(self._exclude))

    def should_track(self, document: DocumentRef | None) -> bool:
        if document is None or not document.path:
            return False
        return self.is_within_scope(document.path)

    def is_within_scope(self, path: str) -> bool:
        if not path:
            return False
        if self.matches_exclude(path):
            LOGGER.debug("Excluded by filter: %s", path)
            return False
        if not self._include_regex:
            return True
        return self.matches_include(path)

    def matches_include(self, path: str) -> bool:
        if not self._include_regex:
            return True
        return any(regex.search(path) for regex in self._include_regex)

    def matches_exclude(self, path: str) -> bool:
        return any(regex.search(path) for regex in self._exclude_regex)

    def add_include(self, pattern: str) -> None:
        if pattern in self._include:
            return
        regex = compile_pattern(pattern)
        self._include.append(pattern)
        self._include_regex.append(regex)

    def remove_include(self, pattern: str) -> bool:
        if pattern not in self._include:
            return False
        index = self._include.index(pattern)
        del self._include[index]
        del self._include_regex[index]
        return True

    def add_exclude(self, pattern: str) -> None:
        if pattern in self._exclude:
            return
        regex = compile_pattern(pattern)
        self._exclude.append(pattern)
        self._exclude_regex.append(regex)

    def remove_exclude(self, pattern: str) -> bool:
        if pattern not in self._exclude:
            return False
        index = self._exclude.index(pattern)
        del self._exclude[index]
        del self._exclude_regex[index]
        return True

    def update_from_rules(self, rules: FilterRules) -> None:
        """Replace all rules at once; on a bad pattern the old rules stay."""
        self.replace(rules.include_patterns, rules.exclude_patterns)

    def replace(self, include: Sequence[str], exclude: Sequence[str]) -> None:
        include = _dedupe(include)
        exclude = _dedupe(exclude)
        include_regex = _compile_all(include)
        exclude_regex = _compile_all(exclude)

        self._include, self._include_regex = include, include_regex
        self._exclude, self._exclude_regex = exclude, exclude_regex
        LOGGER.debug(
            "Filter rules updated: %d include, %d exclude", len(include), len(exclude)
        )

    def reset(self) -> None:
        self._include, self._include_regex = [], []
        self._exclude, self._exclude_regex = [], []
