from __future__ import annotations
import logging
import re
from dataclasses import replace
from typing import Callable

from aiogram import Dispatcher, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message
from aiogram.utils.formatting import Bold, Code, Italic, Text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings
from .credentials import forget_credential, get_credential, set_credential
from .errors import MissingCredentialError
from .exam import ExamData, Question, Section
from .grader import EvaluationEngine, EvaluationSummary
from .keyboards import kb_check, kb_check_all
from .llm import HintProvider, build_hint_provider
from .session import ExamSession, FeedbackRecord
from .validation import CHECK_CALLBACK_PREFIX

logger = logging.getLogger(__name__)

NO_EXAM_TEXT = "No exam loaded."
NEED_KEY_TEXT = "Please enter your API key first: /key <your key>"
CHECKING_TEXT = "⏳ Checking..."
STILL_CHECKING_TEXT = "Still checking this answer..."
MESSAGE_CHUNK_SIZE = 4000

_ANSWER_RE = re.compile(r"^\s*([^\s:]+)\s*:\s*(.*)$", re.DOTALL)

# ---------------- rendering ----------------
def render_feedback(record: FeedbackRecord | None) -> Text:
    if record is None:
        return Text("")
    if record.loading:
        return Text(CHECKING_TEXT)
    if record.correct:
        return Text("✔ Correct!")
    return Text("✖ Incorrect. ", Bold("Hint:"), " ", record.hint)

def build_feedback_message(record: FeedbackRecord | None) -> dict[str, object]:
    return render_feedback(record).as_kwargs()

def build_section_message(section: Section) -> dict[str, object]:
    parts: list[object] = [Bold(section.title)]
    if section.instructions:
        parts.extend(["\n", Bold(section.instructions)])
    if section.additional_info:
        parts.extend(["\n", section.additional_info])
    return Text(*parts).as_kwargs()

def build_question_message(question: Question) -> dict[str, object]:
    return Text(
        Bold(question.label),
        "\n",
        Italic("Reply to this message with your answer, or send "),
        Code(f"{question.id}: your answer"),
    ).as_kwargs()

def _summary_line(question_id: str, record: FeedbackRecord) -> Text:
    line = Text(Code(question_id), " ", render_feedback(record))
    overflow = len(line.as_kwargs()["text"]) - MESSAGE_CHUNK_SIZE
    if overflow > 0:
        hint = record.hint[: max(len(record.hint) - overflow - 1, 0)] + "…"
        line = Text(Code(question_id), " ", render_feedback(replace(record, hint=hint)))
    return line

def build_summary_messages(summary: EvaluationSummary, session: ExamSession) -> list[dict[str, object]]:
    """Score line first, then per-question feedback split to fit Telegram's limit."""
    messages = [Text(f"You got {summary.correct} out of {summary.total} correct.").as_kwargs()]
    chunk: list[object] = []
    chunk_len = 0
    for q in session.exam.questions():
        record = session.feedback.get(q.id)
        if record is None or record.loading:
            continue
        line = _summary_line(q.id, record)
        line_len = len(line.as_kwargs()["text"])
        if chunk and chunk_len + 1 + line_len > MESSAGE_CHUNK_SIZE:
            messages.append(Text(*chunk).as_kwargs())
            chunk, chunk_len = [], 0
        if chunk:
            chunk.append("\n")
            chunk_len += 1
        chunk.append(line)
        chunk_len += line_len
    if chunk:
        messages.append(Text(*chunk).as_kwargs())
    return messages

def parse_answer_message(text: str, exam: ExamData) -> tuple[str, str] | None:
    m = _ANSWER_RE.match(text or "")
    if not m:
        return None
    question_id, answer = m.group(1), m.group(2)
    if exam.find_question(question_id) is None:
        return None
    return question_id, answer

# ---------------- per-user sessions ----------------
class SessionRegistry:
    """In-memory ExamSession per Telegram user; nothing here outlives the process."""

    def __init__(
        self,
        exam: ExamData | None,
        provider_factory: Callable[[str], HintProvider],
        *,
        hint_timeout_s: float | None,
    ) -> None:
        self.exam = exam
        self._provider_factory = provider_factory
        self._hint_timeout_s = hint_timeout_s
        self._engines: dict[int, EvaluationEngine] = {}
        self._question_messages: dict[tuple[int, int], str] = {}

    def engine_for(self, tg_user_id: int) -> EvaluationEngine | None:
        if self.exam is None:
            return None
        engine = self._engines.get(tg_user_id)
        if engine is None:
            engine = EvaluationEngine(
                ExamSession(self.exam),
                self._provider_factory,
                hint_timeout_s=self._hint_timeout_s,
            )
            self._engines[tg_user_id] = engine
        return engine

    def remember_question_message(self, chat_id: int, message_id: int, question_id: str) -> None:
        self._question_messages[(chat_id, message_id)] = question_id

    def question_for_message(self, chat_id: int, message_id: int) -> str | None:
        return self._question_messages.get((chat_id, message_id))

async def _load_credential(sessionmaker: async_sessionmaker[AsyncSession], tg_user_id: int) -> str | None:
    async with sessionmaker() as s:
        return await get_credential(s, tg_user_id)

async def _send_exam(m: Message, registry: SessionRegistry) -> None:
    exam = registry.exam
    if exam is None:
        await m.answer(NO_EXAM_TEXT)
        return
    await m.answer(**Text(Bold("Exam Practice")).as_kwargs())
    for section in exam.sections:
        await m.answer(**build_section_message(section))
        for q in section.questions:
            sent = await m.answer(**build_question_message(q), reply_markup=kb_check(q.id))
            registry.remember_question_message(sent.chat.id, sent.message_id, q.id)
    await m.answer("When you are done:", reply_markup=kb_check_all())

async def _check_all(
    m: Message,
    tg_user_id: int,
    registry: SessionRegistry,
    sessionmaker: async_sessionmaker[AsyncSession],
) -> None:
    engine = registry.engine_for(tg_user_id)
    if engine is None:
        await m.answer(NO_EXAM_TEXT)
        return
    credential = await _load_credential(sessionmaker, tg_user_id)
    try:
        summary = await engine.check_all(credential)
    except MissingCredentialError:
        await m.answer(NEED_KEY_TEXT)
        return
    for kwargs in build_summary_messages(summary, engine.session):
        await m.answer(**kwargs)

def register_handlers(
    dp: Dispatcher,
    *,
    settings: Settings,
    sessionmaker: async_sessionmaker[AsyncSession],
    exam: ExamData | None,
    provider_factory: Callable[[str], HintProvider] | None = None,
) -> SessionRegistry:
    if provider_factory is None:
        def provider_factory(credential: str) -> HintProvider:
            return build_hint_provider(settings, credential)

    registry = SessionRegistry(exam, provider_factory, hint_timeout_s=settings.hint_timeout_s)

    @dp.message(CommandStart())
    async def on_start(m: Message):
        logger.info("exam_requested user_id=%s", m.from_user.id)
        await _send_exam(m, registry)

    @dp.message(Command("key"))
    async def on_key(m: Message):
        parts = (m.text or "").split(maxsplit=1)
        if len(parts) < 2 or not parts[1].strip():
            await m.answer(NEED_KEY_TEXT)
            return
        async with sessionmaker() as s:
            await set_credential(s, m.from_user.id, parts[1])
        try:
            await m.delete()
        except TelegramBadRequest:
            logger.warning("credential_message_not_deleted user_id=%s", m.from_user.id)
        await m.answer("API key saved.")

    @dp.message(Command("forget_key"))
    async def on_forget_key(m: Message):
        async with sessionmaker() as s:
            removed = await forget_credential(s, m.from_user.id)
        await m.answer("API key removed." if removed else "No API key was stored.")

    @dp.message(Command("check_all"))
    async def on_check_all(m: Message):
        await _check_all(m, m.from_user.id, registry, sessionmaker)

    @dp.callback_query(F.data == "check_all")
    async def on_check_all_button(c: CallbackQuery):
        await c.answer()
        await _check_all(c.message, c.from_user.id, registry, sessionmaker)

    @dp.callback_query(F.data.startswith(CHECK_CALLBACK_PREFIX))
    async def on_check(c: CallbackQuery):
        question_id = c.data[len(CHECK_CALLBACK_PREFIX):]
        engine = registry.engine_for(c.from_user.id)
        if engine is None:
            await c.answer(NO_EXAM_TEXT)
            return
        if engine.session.exam.find_question(question_id) is None:
            await c.answer()
            return
        if engine.is_pending(question_id):
            await c.answer(STILL_CHECKING_TEXT)
            return
        credential = await _load_credential(sessionmaker, c.from_user.id)
        if not credential:
            await c.answer(NEED_KEY_TEXT, show_alert=True)
            return
        await c.answer()
        status = await c.message.answer(CHECKING_TEXT)
        record = await engine.check(question_id, credential)
        await status.edit_text(**build_feedback_message(record))

    @dp.message(F.text)
    async def on_answer(m: Message):
        engine = registry.engine_for(m.from_user.id)
        if engine is None:
            await m.answer(NO_EXAM_TEXT)
            return
        question_id = None
        answer = m.text
        if m.reply_to_message is not None:
            question_id = registry.question_for_message(m.chat.id, m.reply_to_message.message_id)
        if question_id is None:
            parsed = parse_answer_message(m.text, engine.session.exam)
            if parsed is None:
                await m.answer("Reply to a question, or send <question id>: <answer>. Use /start to see the exam.")
                return
            question_id, answer = parsed
        engine.session.answers.set_answer(question_id, answer)
        logger.info("answer_saved user_id=%s question_id=%s answer_len=%s", m.from_user.id, question_id, len(answer))
        await m.answer(
            **Text("Saved answer for ", Code(question_id), ".").as_kwargs(),
            reply_markup=kb_check(question_id),
        )

    return registry
