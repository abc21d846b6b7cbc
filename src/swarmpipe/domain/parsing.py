"""
Tolerant parsing of structured agent output.

Agents return free text that is supposed to embed structured data (a JSON
task list, markdown sections, approval keywords). Parsers here accept a
superset of structurally valid inputs, normalize at the boundary, and
report failures as a tagged ``ParseError`` rather than raising deep inside
business logic.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from swarmpipe.domain.exceptions import TaskParseError
from swarmpipe.domain.models import DecomposedTask

T = TypeVar("T")

FRONTEND_MARKER = "[FRONTEND]"

FRONTEND_KEYWORDS = (
    "frontend",
    "ui",
    "component",
    "page",
    "view",
    "layout",
    "style",
    "react",
    "design",
)

_SECTION_RE = re.compile(r"^##\s+(.+?)\s*$", re.MULTILINE)
_TOP_HEADING_RE = re.compile(r"^#{1,2}(?=\s)", re.MULTILINE)


# =============================================================================
# TAGGED RESULT
# =============================================================================


@dataclass(frozen=True)
class ParseOk(Generic[T]):
    """Successful parse."""

    value: T

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class ParseError:
    """Failed parse with a human-readable reason."""

    reason: str
    raw: str = ""

    def unwrap(self) -> Any:
        """Raise the failure as a fatal structural error."""
        raise TaskParseError(self.reason, self.raw)


ParseResult = ParseOk[T] | ParseError


# =============================================================================
# JSON ARRAYS
# =============================================================================


def _extract_array(raw: str) -> ParseResult[list[Any]]:
    """Slice the outermost ``[...]`` out of surrounding prose and decode it."""
    start = raw.find("[")
    end = raw.rfind("]")
    if start == -1 or end == -1 or end <= start:
        return ParseError(
            f"Could not find JSON array in response:\n{raw[:200]}...", raw
        )
    try:
        parsed = json.loads(raw[start : end + 1])
    except json.JSONDecodeError as e:
        return ParseError(f"Invalid JSON array: {e}", raw)
    if not isinstance(parsed, list):
        return ParseError("Parsed JSON is not an array.", raw)
    return ParseOk(parsed)


def parse_json_array(raw: str) -> ParseResult[list[str]]:
    """Extract a JSON array of strings from a response that may contain prose."""
    result = _extract_array(raw)
    if isinstance(result, ParseError):
        return result
    if not all(isinstance(item, str) for item in result.value):
        return ParseError("Parsed JSON is not an array of strings.", raw)
    return ParseOk(list(result.value))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_decomposed_tasks(raw: str) -> ParseResult[list[DecomposedTask]]:
    """Parse a task decomposition.

    Accepts either a flat list of strings (no dependencies) or a list of
    objects ``{"id"?: int, "task"|"description": str, "dependsOn"?: [int]}``.
    Missing or duplicate ids are assigned sequentially; non-integer
    dependency values are dropped.

    Args:
        raw: Agent response text.

    Returns:
        ParseOk with the normalized tasks, or ParseError.
    """
    result = _extract_array(raw)
    if isinstance(result, ParseError):
        return result

    tasks: list[DecomposedTask] = []
    used_ids: set[int] = set()
    for i, entry in enumerate(result.value):
        if isinstance(entry, str):
            description, raw_id, raw_deps = entry, None, []
        elif isinstance(entry, dict):
            description = entry.get("task", entry.get("description"))
            raw_id = entry.get("id")
            raw_deps = entry.get("dependsOn", entry.get("depends_on", []))
        else:
            return ParseError(f"Invalid task entry at index {i}: {entry!r}", raw)

        if not isinstance(description, str) or not description:
            return ParseError(f"Invalid task entry at index {i}: {entry!r}", raw)

        task_id = raw_id if _is_int(raw_id) and raw_id not in used_ids else None
        if task_id is None:
            task_id = i + 1
            while task_id in used_ids:
                task_id += 1
        used_ids.add(task_id)

        deps = raw_deps if isinstance(raw_deps, list) else []
        tasks.append(
            DecomposedTask(
                id=task_id,
                task=description,
                depends_on=tuple(d for d in deps if _is_int(d)),
            )
        )
    return ParseOk(tasks)


# =============================================================================
# KEYWORDS AND SECTIONS
# =============================================================================


def response_contains(response: str, keyword: str) -> bool:
    """Case-insensitive substring check used for approval keywords."""
    return keyword.casefold() in response.casefold()


def text_after_keyword(response: str, keyword: str) -> str:
    """Text following the first case-insensitive occurrence of ``keyword``.

    The whole response is returned when the keyword is absent.
    """
    match = re.search(re.escape(keyword), response, re.IGNORECASE)
    if match is None:
        return response.strip()
    return response[match.end() :].strip()


def has_frontend_work(tasks: list[str]) -> bool:
    """Check whether any task mentions frontend work."""
    return any(kw in task.lower() for task in tasks for kw in FRONTEND_KEYWORDS)


def is_frontend_task(task: str, marker: str = FRONTEND_MARKER) -> bool:
    """Check whether a task carries the (case-sensitive) frontend marker."""
    return marker in task


def extract_sections(markdown: str) -> dict[str, str]:
    """Split markdown into ``## header`` -> body pairs, in document order."""
    sections: dict[str, str] = {}
    matches = list(_SECTION_RE.finditer(markdown))
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(markdown)
        sections[match.group(1)] = markdown[match.end() : end].strip()
    return sections


def missing_sections(markdown: str, required: tuple[str, ...]) -> list[str]:
    """Return the required section headers absent from the markdown."""
    present = {header.casefold() for header in extract_sections(markdown)}
    return [header for header in required if header.casefold() not in present]


def demote_headings(markdown: str) -> str:
    """Turn ``#`` and ``##`` headings into ``###`` so the text nests inside a section."""
    return _TOP_HEADING_RE.sub("###", markdown)


def truncate(text: str, limit: int) -> str:
    """Trim text to ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "\n…[truncated]"
