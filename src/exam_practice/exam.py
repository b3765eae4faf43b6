from __future__ import annotations
import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

import httpx

from .errors import DataLoadError
from .validation import has_errors, validate_exam_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Question:
    id: str
    label: str
    data_question: str  # canonical text sent to the hint provider
    answer: str


@dataclass(frozen=True)
class Section:
    title: str
    questions: tuple[Question, ...]
    instructions: str | None = None
    additional_info: str | None = None


@dataclass(frozen=True)
class ExamData:
    sections: tuple[Section, ...]
    _by_id: dict[str, Question] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_id: dict[str, Question] = {}
        for section in self.sections:
            for q in section.questions:
                if q.id in by_id:
                    raise ValueError(f"duplicate question id {q.id!r}")
                by_id[q.id] = q
        object.__setattr__(self, "_by_id", by_id)

    def question(self, question_id: str) -> Question:
        return self._by_id[question_id]

    def find_question(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)

    def questions(self) -> Iterator[Question]:
        for section in self.sections:
            yield from section.questions

    @property
    def question_count(self) -> int:
        return len(self._by_id)


def parse_exam(payload: dict) -> ExamData:
    """Build ExamData from a decoded document that already passed validation."""
    sections = []
    for raw_section in payload["sections"]:
        questions = tuple(
            Question(
                id=q["id"],
                label=q["label"],
                data_question=q["dataQuestion"],
                answer=q["answer"],
            )
            for q in raw_section["questions"]
        )
        sections.append(
            Section(
                title=raw_section["title"],
                questions=questions,
                instructions=raw_section.get("instructions"),
                additional_info=raw_section.get("additionalInfo"),
            )
        )
    return ExamData(sections=tuple(sections))


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


async def _fetch_url(source: str, *, timeout: float, client: httpx.AsyncClient | None) -> str:
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                resp = await own_client.get(source)
        else:
            resp = await client.get(source, timeout=timeout)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise DataLoadError(f"fetch failed: {exc}") from exc
    return resp.text


async def _read_file(source: str) -> str:
    path = Path(source)
    try:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DataLoadError(f"read failed: {exc}") from exc


async def fetch_exam(
    source: str,
    *,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> ExamData:
    if _is_url(source):
        raw = await _fetch_url(source, timeout=timeout, client=client)
    else:
        raw = await _read_file(source)
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DataLoadError(f"invalid json: {exc}") from exc
    issues = validate_exam_payload(payload)
    for issue in issues:
        if issue.severity == "warning":
            logger.warning("exam_validation_warning source=%s at=%s: %s", source, issue.location(), issue.message)
    if has_errors(issues):
        first = next(i for i in issues if i.severity == "error")
        raise DataLoadError(
            f"{sum(1 for i in issues if i.severity == 'error')} validation error(s), "
            f"first at {first.location()}: {first.message}"
        )
    return parse_exam(payload)


async def load_exam(
    source: str,
    *,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> ExamData | None:
    """Load and validate an exam from a file path or http(s) URL.

    Returns None when the source cannot be read or the document does not
    conform; nothing is partially loaded.
    """
    try:
        exam = await fetch_exam(source, timeout=timeout, client=client)
    except DataLoadError as exc:
        logger.error("exam_load_failed source=%s reason=%s", source, exc)
        return None
    logger.info(
        "exam_loaded source=%s sections=%s questions=%s",
        source,
        len(exam.sections),
        exam.question_count,
    )
    return exam
