"""Decide what the interviewer says next: a template question, a generated
follow-up, or the closing statement.

Generation failures never escape this module: a failed follow-up turns into
the closing statement and a failed closing into a fixed one.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

import structlog

from app.core.errors import GenerationError
from app.services.llm import LanguageModel
from app.services.questions import question_text
from app.services.timing import TimingDecision

logger = structlog.get_logger()

MIN_QUESTION_CHARS = 10
RECENT_RESPONSES = 10


class InterviewPhase(str, Enum):
    ASKING_TEMPLATE = "ASKING_TEMPLATE"
    ASKING_DYNAMIC = "ASKING_DYNAMIC"
    CONCLUDING = "CONCLUDING"


@dataclass
class TurnContext:
    candidate_name: str
    position: str
    questions: list
    question_index: int
    timing: TimingDecision
    asked_questions: list[str] = field(default_factory=list)
    candidate_responses: list[str] = field(default_factory=list)
    template_title: str = ""
    category: str | None = None
    difficulty: str | None = None
    description: str | None = None
    instruction: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Prompt:
    phase: InterviewPhase
    text: str
    question_index: int | None = None
    generated: bool = False
    fallback: bool = False


def choose_phase(timing: TimingDecision, question_index: int, question_count: int) -> InterviewPhase:
    if timing.should_conclude:
        return InterviewPhase.CONCLUDING
    if question_index < question_count:
        return InterviewPhase.ASKING_TEMPLATE
    if timing.should_generate_dynamic_question:
        return InterviewPhase.ASKING_DYNAMIC
    return InterviewPhase.CONCLUDING


def canned_closing(candidate_name: str, position: str) -> str:
    name = f", {candidate_name}" if candidate_name else ""
    role = f" for the {position} position" if position else ""
    return (
        f"Thank you{name}, for taking the time to interview{role} today. "
        "Our team will review your responses and we'll be in touch within the next "
        "few business days with next steps. Have a wonderful day!"
    )


def _comparable(text: str) -> str:
    return re.sub(r"[^a-z0-9 ]", "", text.lower()).strip()


def is_repeat(candidate: str, asked: list[str]) -> bool:
    key = _comparable(candidate)
    return any(key == _comparable(previous) for previous in asked)


def _clean_generated(text: str) -> str:
    text = text.strip().strip('"').strip()
    # Models sometimes prefix the question with a label
    return re.sub(r"^(question|follow-up question)\s*:\s*", "", text, flags=re.IGNORECASE)


class QuestionGenerator:
    def __init__(self, llm: LanguageModel, timeout: float = 10.0):
        self.llm = llm
        self.timeout = timeout

    async def next_prompt(self, ctx: TurnContext) -> Prompt:
        phase = choose_phase(ctx.timing, ctx.question_index, len(ctx.questions))

        if phase is InterviewPhase.ASKING_TEMPLATE:
            prompt = self._template_question(ctx)
            if prompt is not None:
                return prompt
            # Only text-less entries remained
            phase = (
                InterviewPhase.ASKING_DYNAMIC
                if ctx.timing.should_generate_dynamic_question
                else InterviewPhase.CONCLUDING
            )

        if phase is InterviewPhase.ASKING_DYNAMIC:
            question = await self.dynamic_question(ctx)
            if question:
                return Prompt(InterviewPhase.ASKING_DYNAMIC, question, generated=True)

        return await self.closing(ctx)

    def _template_question(self, ctx: TurnContext) -> Prompt | None:
        index = ctx.question_index
        while index < len(ctx.questions):
            text = question_text(ctx.questions[index])
            if text:
                logger.info(
                    "template_question_selected",
                    index=index,
                    total=len(ctx.questions),
                )
                return Prompt(InterviewPhase.ASKING_TEMPLATE, text, question_index=index)
            logger.warning("template_question_without_text", index=index)
            index += 1
        return None

    async def dynamic_question(self, ctx: TurnContext) -> str | None:
        try:
            raw = await self.llm.complete(
                self._dynamic_prompt(ctx), max_tokens=200, temperature=0.7, timeout=self.timeout
            )
        except GenerationError as e:
            logger.warning("dynamic_question_failed", error=e.message)
            return None

        question = _clean_generated(raw)
        if len(question) < MIN_QUESTION_CHARS:
            logger.warning("dynamic_question_too_short", text=question)
            return None
        if is_repeat(question, ctx.asked_questions):
            logger.warning("dynamic_question_repeated", text=question)
            return None
        return question

    async def closing(self, ctx: TurnContext) -> Prompt:
        try:
            text = await self.llm.complete(
                self._closing_prompt(ctx), max_tokens=200, temperature=0.5, timeout=self.timeout
            )
            text = text.strip()
            if text:
                return Prompt(InterviewPhase.CONCLUDING, text, generated=True)
        except GenerationError as e:
            logger.warning("closing_statement_failed", error=e.message)

        return Prompt(
            InterviewPhase.CONCLUDING,
            canned_closing(ctx.candidate_name, ctx.position),
            fallback=True,
        )

    def _dynamic_prompt(self, ctx: TurnContext) -> str:
        asked = "\n".join(f"{i + 1}. {q}" for i, q in enumerate(ctx.asked_questions)) or "None yet"
        responses = "\n".join(ctx.candidate_responses[-RECENT_RESPONSES:]) or "No responses recorded"
        category = ctx.category or "professional"

        return f"""You are an expert interviewer conducting a {category} interview for the position: {ctx.position}.

INTERVIEW CONTEXT:
- Template: {ctx.template_title or 'Not provided'}
- Description: {ctx.description or 'Not provided'}
- Category: {ctx.category or 'General'}
- Difficulty: {ctx.difficulty or 'Intermediate'}
- Tags: {', '.join(ctx.tags) if ctx.tags else 'None'}
- Persona Instructions: {ctx.instruction or 'Be professional and thorough'}
- Time remaining: about {max(ctx.timing.remaining_minutes, 0):.0f} minutes

ALREADY ASKED QUESTIONS:
{asked}

RECENT CANDIDATE RESPONSES:
{responses}

REQUIREMENTS:
1. Generate ONE follow-up question that builds on the candidate's previous responses
2. The question should align with the interview category and difficulty level
3. Do NOT repeat or rephrase any of the already asked questions
4. Make it specific to the {ctx.position} role
5. Keep it short enough to answer well in the remaining time
6. Focus on evaluating skills, experience, or cultural fit

Generate only the question text, nothing else:"""

    def _closing_prompt(self, ctx: TurnContext) -> str:
        return f"""You are an AI interviewer wrapping up a {ctx.category or 'professional'} interview with {ctx.candidate_name or 'the candidate'} for the position: {ctx.position}.

Write the closing statement in 2-3 sentences:
- Thank the candidate for their time
- Mention that the team will review the interview and follow up with next steps
- Do NOT ask any further questions

Persona Instructions: {ctx.instruction or 'Be professional and warm'}

Generate only the closing statement, nothing else:"""
