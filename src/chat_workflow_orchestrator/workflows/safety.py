"""Safety checks for language-model tool selections.

The model's structured output is treated as untrusted input: it may contain
hallucinated host-language syntax (function calls, template interpolation,
environment lookups) inside what should be plain string values. The checks
here run in this order for every selection:

1. ``scan_raw`` on the completion text, before JSON parsing.
2. ``substitute_identifiers`` replaces well-known internal variable names
   (``taskDbId`` and friends) with their configured literal values.
3. ``escape_templates`` neutralises any remaining ``${...}`` span.
4. ``find_violation`` walks the parameter tree and reports the first
   forbidden construct together with its location.

Steps 2-4 are bundled in :meth:`SafetyValidator.sanitize`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from chat_workflow_orchestrator.workflows.errors import DeepPatternDetected, RawPatternDetected

logger = logging.getLogger(__name__)

JsonValue = Union[None, bool, int, float, str, list["JsonValue"], dict[str, "JsonValue"]]

TEMPLATE_PLACEHOLDER = "[template-variable-blocked]"

# identifier immediately followed by "(" with only whitespace before ")"
RAW_CALL_PATTERN = re.compile(r"\b[A-Za-z_][\w$]*\(\s*\)", re.ASCII)

TEMPLATE_PATTERN = re.compile(r"\$\{(.*?)\}", re.DOTALL)

DEFAULT_DENIED_IDENTIFIERS: tuple[str, ...] = (
    "taskDbId",
    "staffDbId",
    "TASK_DB_ID",
    "STAFF_DB_ID",
    "NOTION_TASK_DB_ID",
    "NOTION_STAFF_DB_ID",
)

_DEEP_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("call", re.compile(r"\b[A-Za-z_][\w$]*(?:\.[A-Za-z_$][\w$]*)*\([^()]*\)", re.ASCII)),
    ("template", re.compile(r"\$\{[^}]*\}")),
    ("builtin", re.compile(r"\b(?:eval|Function|setTimeout|setInterval)\s*\(")),
    ("dynamic-access", re.compile(r"\b\w+\[['\"]\w+['\"]\]\s*\(")),
    ("arrow-function", re.compile(r"=>\s*\{")),
    ("environment", re.compile(r"\bprocess\.env\b|\bos\.environ\b|\bos\.getenv\b")),
)

# Checked in order; the first fragment found in the offending text wins.
_SUGGESTIONS: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("taskDbId", "TASK_DB_ID"),
        "Use the literal task database ID value, not the variable name taskDbId.",
    ),
    (
        ("staffDbId", "STAFF_DB_ID"),
        "Use the literal staff database ID value, not the variable name staffDbId.",
    ),
    (
        ("process.env", "os.environ", "os.getenv"),
        "Do not reference environment variables; use literal values instead.",
    ),
    (("${",), "Remove template syntax such as ${...} and use literal values."),
    (("=>",), "Do not include function definitions; use plain literal values."),
    (("(",), "Do not include function calls; use literal values instead."),
)

DEFAULT_SUGGESTION = "Use plain literal values for every parameter."


def get_error_suggestion(pattern: str) -> str:
    """Return a user-facing remediation hint for an offending fragment."""
    for fragments, suggestion in _SUGGESTIONS:
        if any(fragment in pattern for fragment in fragments):
            return suggestion
    return DEFAULT_SUGGESTION


@dataclass(frozen=True, slots=True)
class SanitizationFinding:
    """A forbidden construct and its location inside a parameter tree."""

    pattern: str
    path: str


def _context(text: str, start: int, end: int, radius: int = 20) -> str:
    return text[max(0, start - radius) : end + radius]


def scan_raw(text: str) -> None:
    """Reject a raw completion that contains a call-like token.

    Raises:
        RawPatternDetected: If something like ``name()`` appears in ``text``.
    """
    match = RAW_CALL_PATTERN.search(text)
    if match is None:
        return
    context = _context(text, match.start(), match.end())
    logger.error(
        "Call-like token in raw tool selection",
        extra={"phase": "raw-scan", "pattern": match.group(0), "context": context},
    )
    raise RawPatternDetected(match.group(0), context)


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _walk_strings(value: JsonValue, path: str = "") -> Iterable[tuple[str, str]]:
    if isinstance(value, str):
        yield path, value
    elif isinstance(value, Mapping):
        for key, child in value.items():
            yield from _walk_strings(child, _join(path, str(key)))
    elif isinstance(value, (list, tuple)):
        for index, child in enumerate(value):
            yield from _walk_strings(child, f"{path}[{index}]")


def _map_strings(value: JsonValue, fn: Callable[[str], str]) -> JsonValue:
    if isinstance(value, str):
        return fn(value)
    if isinstance(value, Mapping):
        return {key: _map_strings(child, fn) for key, child in value.items()}
    if isinstance(value, (list, tuple)):
        return [_map_strings(child, fn) for child in value]
    return value


def escape_template_text(text: str) -> str:
    return TEMPLATE_PATTERN.sub(TEMPLATE_PLACEHOLDER, text)


def escape_templates(value: JsonValue) -> JsonValue:
    """Replace every ``${...}`` span in every string leaf with a placeholder.

    Running this twice gives the same output as running it once.
    """
    return _map_strings(value, escape_template_text)


def _denied_pattern(names: Iterable[str]) -> re.Pattern[str] | None:
    names = sorted(set(names), key=len, reverse=True)
    if not names:
        return None
    return re.compile(r"\b(?:" + "|".join(re.escape(n) for n in names) + r")\b")


def find_violation(
    value: JsonValue,
    denied_identifiers: Iterable[str] = DEFAULT_DENIED_IDENTIFIERS,
) -> SanitizationFinding | None:
    """Return the first forbidden construct in ``value``, or ``None`` when clean."""
    denied = _denied_pattern(denied_identifiers)
    for path, text in _walk_strings(value):
        for _, pattern in _DEEP_PATTERNS:
            match = pattern.search(text)
            if match is not None:
                return SanitizationFinding(pattern=match.group(0), path=path)
        if denied is not None:
            match = denied.search(text)
            if match is not None:
                return SanitizationFinding(pattern=match.group(0), path=path)
    return None


class SafetyValidator:
    """Repairs and validates tool-selection parameters.

    Args:
        substitutions: Known internal variable names mapped to the literal
            values that should replace them. Names with an empty value are
            left in place so the deny-list still rejects them.
        denied_identifiers: Bare names that must never reach a connector.
    """

    def __init__(
        self,
        substitutions: Mapping[str, str] | None = None,
        denied_identifiers: Iterable[str] = DEFAULT_DENIED_IDENTIFIERS,
    ) -> None:
        self.substitutions = {k: v for k, v in (substitutions or {}).items() if v}
        self.denied_identifiers = tuple(denied_identifiers)
        self._word_patterns = [
            (re.compile(r"\b" + re.escape(name) + r"\b"), value)
            for name, value in sorted(
                self.substitutions.items(), key=lambda item: len(item[0]), reverse=True
            )
        ]

    def scan_raw(self, text: str) -> None:
        scan_raw(text)

    def substitute_text(self, text: str) -> str:
        result = text
        for name, value in self.substitutions.items():
            upper = name.upper()
            for template in (
                "${" + name + "}",
                "${" + upper + "}",
                "${process.env." + upper + "}",
            ):
                result = result.replace(template, value)
        for pattern, value in self._word_patterns:
            result = pattern.sub(lambda _m, v=value: v, result)
        return result

    def substitute_identifiers(self, value: JsonValue) -> JsonValue:
        """Replace whole-word occurrences of known names with their values."""
        if not self.substitutions:
            return value
        return _map_strings(value, self.substitute_text)

    def sanitize(self, parameters: Mapping[str, Any]) -> dict[str, Any]:
        """Return a repaired copy of ``parameters``.

        Raises:
            DeepPatternDetected: If a forbidden construct survives repair.
        """
        repaired = escape_templates(self.substitute_identifiers(dict(parameters)))
        finding = find_violation(repaired, self.denied_identifiers)
        if finding is not None:
            logger.error(
                "Forbidden content in tool parameters",
                extra={"phase": "deep-scan", "pattern": finding.pattern, "path": finding.path},
            )
            raise DeepPatternDetected(finding.pattern, finding.path)
        return repaired
