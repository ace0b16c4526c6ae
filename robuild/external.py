"""Classification of imported packages into external and inlined modules.

The rule set is assembled from three sources, in order:

1. platform builtins plus every ``dependencies``/``peerDependencies`` name of
   the package manifest (exact name and ``^name/`` subpath pattern);
2. ``no_external`` rules, which remove matching seed rules;
3. ``external`` additions, appended verbatim.

A predicate ``external`` replaces the assembled set entirely and is handed to
the engine as-is.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Sequence, Union
import re

from .builtins import builtin_module_names
from .core.console import BuildConsole


ExternalPredicate = Callable[..., bool]
RuleValue = Union[str, "re.Pattern[str]"]
ExternalOption = Union[Sequence[RuleValue], ExternalPredicate, None]

_REGEX_LITERAL = re.compile(r"^/(?P<source>.+)/(?P<flags>[imsx]*)$", re.S)
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


class RuleKind(str, Enum):
    EXACT = "exact"
    GLOB = "glob"
    PATTERN = "pattern"
    PREDICATE = "predicate"


class RuleTag(str, Enum):
    EXTERNAL = "external"
    INLINED = "inlined"


@dataclass(frozen=True, slots=True)
class ExternalRule:
    kind: RuleKind
    value: Any
    tag: RuleTag = RuleTag.EXTERNAL

    @classmethod
    def from_value(cls, value: Any, *, tag: RuleTag = RuleTag.EXTERNAL) -> "ExternalRule":
        if isinstance(value, ExternalRule):
            return cls(kind=value.kind, value=value.value, tag=tag)
        if isinstance(value, re.Pattern):
            return cls(kind=RuleKind.PATTERN, value=value, tag=tag)
        if isinstance(value, str):
            if "*" in value:
                return cls(kind=RuleKind.GLOB, value=value, tag=tag)
            return cls(kind=RuleKind.EXACT, value=value, tag=tag)
        if callable(value):
            return cls(kind=RuleKind.PREDICATE, value=value, tag=tag)
        raise TypeError(f"External rules must be strings, patterns or predicates, got {type(value).__name__}")

    def matches(self, module_id: str, importer: str | None = None) -> bool:
        if self.kind is RuleKind.EXACT:
            return module_id == self.value
        if self.kind is RuleKind.GLOB:
            return fnmatchcase(module_id, self.value)
        if self.kind is RuleKind.PATTERN:
            return self.value.search(module_id) is not None
        # Predicates see the module id only, the same call the no_external pass makes.
        return bool(self.value(module_id))

    def describe(self) -> str:
        if self.kind is RuleKind.PATTERN:
            return f"/{self.value.pattern}/"
        if self.kind is RuleKind.PREDICATE:
            return f"<predicate {getattr(self.value, '__name__', 'anonymous')}>"
        return str(self.value)


class ExternalRuleSet:
    """Ordered, tagged rules; calling the set answers "is this id external?"."""

    def __init__(self, rules: Iterable[ExternalRule] = ()) -> None:
        self._rules: List[ExternalRule] = list(rules)

    @property
    def rules(self) -> tuple[ExternalRule, ...]:
        return tuple(self._rules)

    def external_rules(self) -> List[ExternalRule]:
        return [rule for rule in self._rules if rule.tag is RuleTag.EXTERNAL]

    def inlined_rules(self) -> List[ExternalRule]:
        return [rule for rule in self._rules if rule.tag is RuleTag.INLINED]

    def is_external(self, module_id: str, importer: str | None = None) -> bool:
        # Explicit no-external rules override every external rule, including wildcards.
        for rule in self.inlined_rules():
            if rule.matches(module_id, importer):
                return False
        return any(rule.matches(module_id, importer) for rule in self.external_rules())

    def __call__(self, module_id: str, importer: str | None = None) -> bool:
        return self.is_external(module_id, importer)

    def __iter__(self) -> Iterator[ExternalRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def to_mapping(self) -> Dict[str, List[str]]:
        return {
            "external": [rule.describe() for rule in self.external_rules()],
            "inlined": [rule.describe() for rule in self.inlined_rules()],
        }


def coerce_rule_value(value: Any) -> Any:
    """Turn ``"/source/flags"`` strings from config files into compiled patterns."""

    if not isinstance(value, str):
        return value
    match = _REGEX_LITERAL.match(value)
    if match is None:
        return value
    flags = 0
    for flag in match.group("flags"):
        flags |= _REGEX_FLAGS[flag]
    return re.compile(match.group("source"), flags)


def coerce_external_option(value: Any, *, field_name: str) -> ExternalOption:
    if value is None or callable(value):
        return value
    if isinstance(value, (str, re.Pattern)):
        return [coerce_rule_value(value)]
    if isinstance(value, Sequence):
        items = [coerce_rule_value(item) for item in value]
        for item in items:
            if not isinstance(item, (str, re.Pattern)) and not callable(item):
                raise TypeError(f"{field_name} entries must be names, patterns or predicates, got {type(item).__name__}")
        return items
    raise TypeError(f"{field_name} must be a list of names/patterns or a predicate")


def dependency_names(manifest: Mapping[str, Any]) -> List[str]:
    names: List[str] = []
    for section in ("dependencies", "peerDependencies"):
        values = manifest.get(section) or {}
        if isinstance(values, Mapping):
            names.extend(str(name) for name in values)
    return list(dict.fromkeys(names))


def subpath_pattern(name: str) -> "re.Pattern[str]":
    return re.compile(f"^{re.escape(name)}/")


def _subpath_prefix(name: str) -> str:
    return f"^{re.escape(name)}/"


def build_external_deps(manifest: Mapping[str, Any]) -> List[ExternalRule]:
    rules = [ExternalRule(RuleKind.EXACT, name) for name in builtin_module_names()]
    for name in dependency_names(manifest):
        rules.append(ExternalRule(RuleKind.EXACT, name))
        rules.append(ExternalRule(RuleKind.PATTERN, subpath_pattern(name)))
    return rules


def _pattern_source(rule: ExternalRule) -> str | None:
    if rule.kind is RuleKind.PATTERN:
        return rule.value.pattern
    return None


def apply_no_external(
    rules: List[ExternalRule],
    no_external: ExternalOption,
    manifest: Mapping[str, Any],
    *,
    console: BuildConsole | None = None,
) -> List[ExternalRule]:
    if not no_external:
        return rules

    if callable(no_external):
        excluded: List[str] = []
        for name in dependency_names(manifest):
            try:
                if no_external(name):
                    excluded.append(name)
            except Exception as exc:
                if console is not None:
                    console.verbose(f"no_external predicate failed for '{name}', keeping it external: {exc}")
        prefixes = tuple(_subpath_prefix(name) for name in excluded)
        kept: List[ExternalRule] = []
        for rule in rules:
            if rule.kind is RuleKind.EXACT and rule.value in excluded:
                continue
            source = _pattern_source(rule)
            if source is not None and prefixes and source.startswith(prefixes):
                continue
            kept.append(rule)
        return kept

    kept = []
    for rule in rules:
        if not any(_removed_by(rule, candidate) for candidate in no_external):
            kept.append(rule)
    return kept


def _removed_by(rule: ExternalRule, candidate: Any) -> bool:
    if isinstance(candidate, str):
        if rule.kind is RuleKind.EXACT:
            return rule.value == candidate
        source = _pattern_source(rule)
        return source is not None and source.startswith(_subpath_prefix(candidate))
    if isinstance(candidate, re.Pattern):
        if rule.kind is RuleKind.EXACT:
            return candidate.search(rule.value) is not None
        if rule.kind is RuleKind.PATTERN:
            return rule.value.pattern == candidate.pattern and rule.value.flags == candidate.flags
    return False


def add_custom_external(rules: List[ExternalRule], external: ExternalOption) -> List[ExternalRule]:
    if external and not callable(external):
        return [*rules, *(ExternalRule.from_value(value) for value in external)]
    return rules


def resolve_external_config(
    manifest: Mapping[str, Any],
    *,
    external: ExternalOption = None,
    no_external: ExternalOption = None,
    console: BuildConsole | None = None,
) -> ExternalRuleSet | ExternalPredicate:
    """Build the exclusion rules handed to the engine for one entry."""

    rules = build_external_deps(manifest)
    rules = apply_no_external(rules, no_external, manifest, console=console)
    rules = add_custom_external(rules, external)

    if callable(external):
        return external

    if no_external:
        inline_values = [no_external] if callable(no_external) else list(no_external)
        rules.extend(ExternalRule.from_value(value, tag=RuleTag.INLINED) for value in inline_values)

    return ExternalRuleSet(rules)


__all__ = [
    "ExternalOption",
    "ExternalPredicate",
    "ExternalRule",
    "ExternalRuleSet",
    "RuleKind",
    "RuleTag",
    "add_custom_external",
    "apply_no_external",
    "build_external_deps",
    "coerce_external_option",
    "coerce_rule_value",
    "dependency_names",
    "resolve_external_config",
    "subpath_pattern",
]
