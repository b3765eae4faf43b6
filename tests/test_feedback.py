import asyncio

from exam_practice.exam import ExamData, Question, Section
from exam_practice.grader import EvaluationEngine, EvaluationSummary
from exam_practice.handlers import (
    CHECKING_TEXT,
    MESSAGE_CHUNK_SIZE,
    SessionRegistry,
    build_feedback_message,
    build_question_message,
    build_section_message,
    build_summary_messages,
    parse_answer_message,
)
from exam_practice.session import ExamSession, FeedbackRecord

Q1 = Question(id="q1", label="Capital of France?", data_question="What is the capital of France?", answer="Paris")
Q2 = Question(id="q2", label="Capital of Italy?", data_question="What is the capital of Italy?", answer="Rome")


class FixedHint:
    def __init__(self, hint: str):
        self.hint = hint

    async def get_hint(self, question_text: str, incorrect_answer: str) -> str:
        return self.hint


EXAM = ExamData(
    sections=(
        Section(
            title="Geography",
            questions=(Q1, Q2),
            instructions="Answer in one word.",
            additional_info="Capitals only.",
        ),
    )
)


def test_feedback_pending():
    kwargs = build_feedback_message(FeedbackRecord(correct=False, hint="old", loading=True))
    assert kwargs["text"] == CHECKING_TEXT


def test_feedback_correct():
    kwargs = build_feedback_message(FeedbackRecord(correct=True, hint="", loading=False))
    assert kwargs["text"] == "✔ Correct!"


def test_feedback_incorrect_shows_hint_verbatim():
    hint = r"Remember: it's a European capital on the Seine (a) [b] _x_ *y*"
    kwargs = build_feedback_message(FeedbackRecord(correct=False, hint=hint, loading=False))
    assert kwargs["text"] == "✖ Incorrect. Hint: " + hint
    assert "entities" in kwargs
    assert "parse_mode" not in kwargs or kwargs["parse_mode"] is None


def test_section_and_question_messages():
    section = build_section_message(EXAM.sections[0])
    assert section["text"] == "Geography\nAnswer in one word.\nCapitals only."
    question = build_question_message(Q1)
    assert question["text"].startswith("Capital of France?\n")
    assert "q1: your answer" in question["text"]


def test_summary_lists_resolved_questions():
    registry = SessionRegistry(EXAM, lambda credential: None, hint_timeout_s=None)
    session = registry.engine_for(5).session
    session.feedback.put("q1", FeedbackRecord(correct=True, hint="", loading=False))
    session.feedback.put("q2", FeedbackRecord(correct=False, hint="Think of the Colosseum.", loading=False))
    messages = build_summary_messages(EvaluationSummary(correct=1, total=2), session)
    assert [m["text"] for m in messages] == [
        "You got 1 out of 2 correct.",
        "q1 ✔ Correct!\nq2 ✖ Incorrect. Hint: Think of the Colosseum.",
    ]


def test_summary_with_many_long_hints_fits_message_limit():
    questions = tuple(
        Question(id=f"q{i}", label=f"Question {i}", data_question=f"Question {i}", answer="right")
        for i in range(1, 21)
    )
    exam = ExamData(sections=(Section(title="Long", questions=questions),))
    hint = ("Think about the verb tense and the subject of the sentence. " * 4).strip()
    engine = EvaluationEngine(ExamSession(exam), lambda credential: FixedHint(hint), hint_timeout_s=None)
    for q in questions:
        engine.session.answers.set_answer(q.id, "wrong")
    summary = asyncio.run(engine.check_all("sk-test"))
    assert (summary.correct, summary.total) == (0, 20)

    messages = build_summary_messages(summary, engine.session)
    assert len(messages) > 2
    assert messages[0]["text"] == "You got 0 out of 20 correct."
    assert all(len(m["text"]) <= MESSAGE_CHUNK_SIZE for m in messages)
    lines = [line for m in messages[1:] for line in m["text"].splitlines()]
    assert lines == [f"q{i} ✖ Incorrect. Hint: {hint}" for i in range(1, 21)]


def test_summary_truncates_a_single_oversized_hint():
    registry = SessionRegistry(EXAM, lambda credential: None, hint_timeout_s=None)
    session = registry.engine_for(5).session
    session.feedback.put("q1", FeedbackRecord(correct=False, hint="x" * 5000, loading=False))
    messages = build_summary_messages(EvaluationSummary(correct=0, total=2), session)
    assert len(messages) == 2
    assert len(messages[1]["text"]) <= MESSAGE_CHUNK_SIZE
    assert messages[1]["text"].endswith("…")


def test_parse_answer_message():
    assert parse_answer_message("q1: Paris", EXAM) == ("q1", "Paris")
    assert parse_answer_message("  q2 :  Rome is  ", EXAM) == ("q2", "Rome is  ")
    assert parse_answer_message("q9: Oslo", EXAM) is None
    assert parse_answer_message("just text", EXAM) is None


def test_registry_keeps_one_session_per_user():
    registry = SessionRegistry(EXAM, lambda credential: None, hint_timeout_s=None)
    first = registry.engine_for(1)
    assert registry.engine_for(1) is first
    assert registry.engine_for(2) is not first
    first.session.answers.set_answer("q1", "Paris")
    assert registry.engine_for(2).session.answers.get("q1") == ""
    registry.remember_question_message(10, 100, "q2")
    assert registry.question_for_message(10, 100) == "q2"
    assert registry.question_for_message(10, 101) is None


def test_registry_without_exam():
    registry = SessionRegistry(None, lambda credential: None, hint_timeout_s=None)
    assert registry.engine_for(1) is None
