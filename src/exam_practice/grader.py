from __future__ import annotations
import asyncio
from dataclasses import dataclass, replace
import logging
from typing import Callable

from .errors import MissingCredentialError, ProviderError
from .exam import Question
from .llm import HintProvider
from .normalize import norm_answer
from .session import ExamSession, FeedbackRecord

logger = logging.getLogger(__name__)

HINT_FAILED_TEXT = "Error generating hint."

@dataclass(frozen=True)
class EvaluationSummary:
    correct: int
    total: int

class EvaluationEngine:
    """Checks answers for one ExamSession and writes its FeedbackStore.

    Per question the record moves Unevaluated -> Pending -> resolved
    (correct, incorrect with hint, incorrect with the fallback hint), and a
    new evaluation always restarts at Pending. Each call takes a per-question
    request token; only the latest-issued call may write its resolution, so
    overlapping checks of one question end with the newest request's outcome.
    """

    def __init__(
        self,
        session: ExamSession,
        provider_factory: Callable[[str], HintProvider],
        *,
        hint_timeout_s: float | None = 20.0,
    ) -> None:
        self.session = session
        self._provider_factory = provider_factory
        self._hint_timeout_s = hint_timeout_s
        self._tokens: dict[str, int] = {}

    def is_pending(self, question_id: str) -> bool:
        record = self.session.feedback.get(question_id)
        return bool(record and record.loading)

    async def evaluate(
        self,
        question: Question,
        current_answer: str,
        credential: str | None,
    ) -> FeedbackRecord:
        store = self.session.feedback
        qid = question.id
        prior = store.get(qid)
        token = self._tokens.get(qid, 0) + 1
        self._tokens[qid] = token
        store.put(
            qid,
            FeedbackRecord(
                correct=prior.correct if prior else False,
                hint=prior.hint if prior else "",
                loading=True,
            ),
        )

        if not credential:
            # nothing was attempted: undo the pending write and the token
            self._tokens[qid] = token - 1
            if prior is None:
                store.discard(qid)
            else:
                store.put(qid, replace(prior, loading=False))
            raise MissingCredentialError()

        user_norm = norm_answer(current_answer)
        if user_norm == norm_answer(question.answer):
            return self._resolve(qid, token, FeedbackRecord(correct=True, hint="", loading=False))

        hint = await self._fetch_hint(question, user_norm, credential)
        return self._resolve(qid, token, FeedbackRecord(correct=False, hint=hint, loading=False))

    async def check(self, question_id: str, credential: str | None) -> FeedbackRecord:
        question = self.session.exam.question(question_id)
        return await self.evaluate(question, self.session.answers.get(question_id), credential)

    async def check_all(self, credential: str | None) -> EvaluationSummary:
        if not credential:
            raise MissingCredentialError()
        questions = list(self.session.exam.questions())
        records = await asyncio.gather(
            *(self.evaluate(q, self.session.answers.get(q.id), credential) for q in questions)
        )
        correct = sum(1 for r in records if r.correct)
        logger.info("check_all: correct=%s total=%s", correct, len(questions))
        return EvaluationSummary(correct=correct, total=len(questions))

    async def _fetch_hint(self, question: Question, user_norm: str, credential: str) -> str:
        try:
            provider = self._provider_factory(credential)
            call = provider.get_hint(question.data_question, user_norm)
            if self._hint_timeout_s is None:
                return await call
            return await asyncio.wait_for(call, timeout=self._hint_timeout_s)
        except ProviderError as exc:
            logger.warning("hint_failed question_id=%s reason=%s", question.id, exc)
        except asyncio.TimeoutError:
            logger.warning("hint_failed question_id=%s reason=timeout after %ss", question.id, self._hint_timeout_s)
        except Exception:
            logger.exception("hint_failed question_id=%s reason=unexpected", question.id)
        return HINT_FAILED_TEXT

    def _resolve(self, question_id: str, token: int, record: FeedbackRecord) -> FeedbackRecord:
        if self._tokens.get(question_id) != token:
            logger.debug(
                "stale_evaluation_discarded question_id=%s token=%s latest=%s",
                question_id,
                token,
                self._tokens.get(question_id),
            )
            return record
        self.session.feedback.put(question_id, record)
        return record
