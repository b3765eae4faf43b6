from __future__ import annotations

from dataclasses import dataclass

_QUESTION_FIELDS = ("id", "label", "dataQuestion", "answer")
_OPTIONAL_SECTION_FIELDS = ("instructions", "additionalInfo")

# question ids travel in inline-button callback data, which Telegram caps at 64 bytes
CHECK_CALLBACK_PREFIX = "check:"
CALLBACK_DATA_LIMIT = 64
MAX_QUESTION_ID_BYTES = CALLBACK_DATA_LIMIT - len(CHECK_CALLBACK_PREFIX.encode("utf-8"))


@dataclass(frozen=True)
class ValidationIssue:
    severity: str  # "error" | "warning"
    message: str
    section_index: int | None = None
    question_index: int | None = None

    def location(self) -> str:
        parts = []
        if self.section_index is not None:
            parts.append(f"section {self.section_index}")
        if self.question_index is not None:
            parts.append(f"question {self.question_index}")
        return ", ".join(parts) or "exam"


def _validate_question(
    question,
    section_index: int,
    question_index: int,
    seen_ids: set[str],
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not isinstance(question, dict):
        return [ValidationIssue("error", "question must be an object", section_index, question_index)]
    for key in _QUESTION_FIELDS:
        value = question.get(key)
        if not isinstance(value, str):
            issues.append(
                ValidationIssue(
                    "error",
                    f"{key} must be a string",
                    section_index,
                    question_index,
                )
            )
    qid = question.get("id")
    if isinstance(qid, str):
        if not qid.strip():
            issues.append(ValidationIssue("error", "id must not be empty", section_index, question_index))
        elif len(qid.encode("utf-8")) > MAX_QUESTION_ID_BYTES:
            issues.append(
                ValidationIssue(
                    "error",
                    f"id longer than {MAX_QUESTION_ID_BYTES} bytes",
                    section_index,
                    question_index,
                )
            )
        elif qid in seen_ids:
            issues.append(
                ValidationIssue(
                    "error",
                    f"duplicate question id {qid!r}",
                    section_index,
                    question_index,
                )
            )
        else:
            seen_ids.add(qid)
    answer = question.get("answer")
    if isinstance(answer, str) and not answer.strip():
        issues.append(ValidationIssue("warning", "answer is empty", section_index, question_index))
    return issues


def validate_exam_payload(payload) -> list[ValidationIssue]:
    """Check a decoded exam document against the sections/questions shape.

    Every question id must be unique across the whole exam, since answers and
    feedback are keyed by id alone. Errors make the document unusable;
    warnings are reported but do not block loading.
    """
    if not isinstance(payload, dict):
        return [ValidationIssue("error", "exam must be an object")]
    sections = payload.get("sections")
    if not isinstance(sections, list):
        return [ValidationIssue("error", "sections must be a list")]

    issues: list[ValidationIssue] = []
    seen_titles: set[str] = set()
    seen_ids: set[str] = set()
    for s_idx, section in enumerate(sections, start=1):
        if not isinstance(section, dict):
            issues.append(ValidationIssue("error", "section must be an object", s_idx))
            continue
        title = section.get("title")
        if not isinstance(title, str) or not title.strip():
            issues.append(ValidationIssue("error", "title must be a non-empty string", s_idx))
        elif title in seen_titles:
            issues.append(ValidationIssue("error", f"duplicate section title {title!r}", s_idx))
        else:
            seen_titles.add(title)
        for key in _OPTIONAL_SECTION_FIELDS:
            value = section.get(key)
            if value is not None and not isinstance(value, str):
                issues.append(ValidationIssue("error", f"{key} must be a string", s_idx))
        questions = section.get("questions")
        if not isinstance(questions, list):
            issues.append(ValidationIssue("error", "questions must be a list", s_idx))
            continue
        if not questions:
            issues.append(ValidationIssue("warning", "section has no questions", s_idx))
        for q_idx, question in enumerate(questions, start=1):
            issues.extend(_validate_question(question, s_idx, q_idx, seen_ids))
    return issues


def has_errors(issues: list[ValidationIssue]) -> bool:
    return any(issue.severity == "error" for issue in issues)
