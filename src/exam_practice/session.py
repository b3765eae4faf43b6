from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Callable

from .exam import ExamData

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class FeedbackRecord:
    correct: bool
    hint: str
    loading: bool

FeedbackListener = Callable[[str, "FeedbackRecord | None"], None]

class AnswerLedger:
    """Latest raw answer per question id. Entries are created on first edit."""

    def __init__(self) -> None:
        self._answers: dict[str, str] = {}

    def set_answer(self, question_id: str, value: str) -> None:
        self._answers[question_id] = value if value is not None else ""

    def get(self, question_id: str) -> str:
        return self._answers.get(question_id, "")

class FeedbackStore:
    """Current FeedbackRecord per question id.

    Every write is published to the registered listeners, in registration
    order, before the write call returns.
    """

    def __init__(self) -> None:
        self._records: dict[str, FeedbackRecord] = {}
        self._listeners: list[FeedbackListener] = []

    def subscribe(self, listener: FeedbackListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def get(self, question_id: str) -> FeedbackRecord | None:
        return self._records.get(question_id)

    def put(self, question_id: str, record: FeedbackRecord) -> None:
        self._records[question_id] = record
        self._publish(question_id, record)

    def discard(self, question_id: str) -> None:
        if self._records.pop(question_id, None) is not None:
            self._publish(question_id, None)

    def items(self):
        return list(self._records.items())

    def _publish(self, question_id: str, record: FeedbackRecord | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(question_id, record)
            except Exception:
                logger.exception("feedback_listener_failed question_id=%s", question_id)

@dataclass
class ExamSession:
    exam: ExamData
    answers: AnswerLedger = field(default_factory=AnswerLedger)
    feedback: FeedbackStore = field(default_factory=FeedbackStore)
