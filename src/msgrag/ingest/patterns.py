"""Cascading pattern recognition for market message guides.

Three pattern families are tried in a fixed priority order and the first one
that matches anything wins:

1. ``Message 123: Name`` markers, each span running until the next marker.
2. ``12.3 456 Title`` lines (section number, three digit message code, title).
3. ``12.3 Segment Title`` lines (section number and a segment name).

Lower priority families are never consulted once a higher one has matched, so
a guide that uses ``Message`` markers is never re-read as a list of sections.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Sequence, Tuple

from .models import UNKNOWN, Record

LOGGER = logging.getLogger(__name__)

_MESSAGE_RE = re.compile(r"(Message \d+:.*?)(?=Message \d+:|\Z)", re.DOTALL)
_MESSAGE_HEADER_RE = re.compile(r"Message (\d+):[ \t]*(.*)")
_CODE_TITLE_RE = re.compile(r"(\d+\.\d+)\s+(\d{3})\s+([A-Za-z].*?)(?=\n\d+\.\d+|\Z)", re.DOTALL)
_SEGMENT_RE = re.compile(r"(\d+\.\d+)\s+([A-Za-z][A-Za-z\s/&]+)")


class PatternFamily(str, Enum):
    """Which extraction strategy produced a set of records."""

    MESSAGE = "message"
    CODE_TITLE = "code_title"
    SEGMENT = "segment"
    NO_MATCH = "no_match"


@dataclass(frozen=True, slots=True)
class Classification:
    """Result of running the cascade over a document's text."""

    family: PatternFamily
    matches: Tuple[re.Match, ...] = ()

    def __bool__(self) -> bool:
        return self.family is not PatternFamily.NO_MATCH


def _message_record(match: re.Match, source_file: str) -> Record:
    content = match.group(1).strip()
    header = _MESSAGE_HEADER_RE.match(content)
    code = header.group(1) if header else ""
    name = header.group(2).strip() if header else ""
    return Record(
        content=content,
        metadata={
            "message_code": code or UNKNOWN,
            "message_name": name or UNKNOWN,
            "source_file": source_file,
        },
    )


def _code_title_record(match: re.Match, source_file: str) -> Record:
    section, code, title = match.group(1), match.group(2), match.group(3).strip()
    return Record(
        content=f"{section} {code} {title}",
        metadata={
            "message_code": code,
            "message_name": title,
            "source_file": source_file,
        },
    )


def _segment_record(match: re.Match, source_file: str) -> Record:
    section, segment = match.group(1), match.group(2).strip()
    return Record(
        content=f"{section} {segment}",
        metadata={
            "section_number": section,
            "segment_name": segment,
            "source_file": source_file,
        },
    )


@dataclass(frozen=True, slots=True)
class _Rule:
    family: PatternFamily
    pattern: re.Pattern
    build: Callable[[re.Match, str], Record]


_RULES: Sequence[_Rule] = (
    _Rule(PatternFamily.MESSAGE, _MESSAGE_RE, _message_record),
    _Rule(PatternFamily.CODE_TITLE, _CODE_TITLE_RE, _code_title_record),
    _Rule(PatternFamily.SEGMENT, _SEGMENT_RE, _segment_record),
)
_BUILDERS = {rule.family: rule.build for rule in _RULES}


def classify(full_text: str) -> Classification:
    """Return the first pattern family with at least one match."""

    for rule in _RULES:
        matches = tuple(rule.pattern.finditer(full_text))
        if matches:
            return Classification(rule.family, matches)
    return Classification(PatternFamily.NO_MATCH)


def records_from(classification: Classification, source_file: str) -> List[Record]:
    """Build records from an existing classification."""

    if not classification:
        return []
    build = _BUILDERS[classification.family]
    return [build(match, source_file) for match in classification.matches]


def tag(full_text: str, source_file: str) -> Tuple[PatternFamily, List[Record]]:
    """Run the cascade over *full_text*; return the family used and its records."""

    classification = classify(full_text)
    if not classification:
        LOGGER.info("No pattern family matched %s; it yields no records", source_file)
        return classification.family, []
    records = records_from(classification, source_file)
    LOGGER.info(
        "Using %s pattern for %s (%d records)",
        classification.family.value,
        source_file,
        len(records),
    )
    return classification.family, records


def extract(full_text: str, source_file: str) -> List[Record]:
    """Extract tagged records from *full_text* using the pattern cascade."""

    return tag(full_text, source_file)[1]


__all__ = ["Classification", "PatternFamily", "classify", "extract", "records_from", "tag"]
