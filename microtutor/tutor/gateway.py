"""
Micro-Tutor: Session Gateway
One learner session. Full turn pipeline:
classify → advance → build prompt → generate → validate (one corrective retry) → commit

The controller decides phase and counters; the generator only supplies text.
Nothing is committed until the generator output validates, so a failed or
cancelled turn leaves the session exactly as it was.
"""

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Awaitable, Callable, Optional

from microtutor.config import MAX_GENERATION_RETRIES, TOTAL_QUESTIONS
from microtutor.errors import (
    ContentGenerationError, InvalidTransition, MissingInput, TurnInProgress,
)
from microtutor.fsm.transitions import (
    Directive, LearnerCommand, TransitionResult, advance, progress_percent,
)
from microtutor.state.session import Phase, QuestionRecord, SessionState, TurnResult
from microtutor.tutor.command_classifier import classify_command, normalize_command_text
from microtutor.tutor.prompt_builder import TurnContext, build_prompt
from microtutor.tutor.validator import SchemaViolation, ValidatedContent, validate_output

logger = logging.getLogger("microtutor.gateway")

LLMCallFunc = Callable[[list[dict]], Awaitable[str]]


class LessonGateway:
    """
    Owns one SessionState for the lifetime of a learner session.

    Public events: begin(), select_option(), continue_(), submit_command(),
    exit(), restart(). Each runs exactly one turn and returns the
    learner-facing TurnResult (never the correct option id).
    """

    def __init__(
        self,
        llm_call_func: LLMCallFunc,
        total_questions: int = TOTAL_QUESTIONS,
        session_id: Optional[str] = None,
        max_retries: int = MAX_GENERATION_RETRIES,
    ):
        if total_questions < 1:
            raise ValueError("total_questions must be at least 1")
        self.session_id = session_id or str(uuid.uuid4())
        self.total_questions = total_questions
        self.max_retries = max_retries
        self._llm_call = llm_call_func

        self.phase = Phase.INTRO
        self.state = SessionState()
        self.needs_attention = False
        self.last_result: Optional[TurnResult] = None

        self._started = False
        self._turn_active = False
        self._pending_question: Optional[QuestionRecord] = None
        # True while the pending question is posed and not yet answered
        self._question_open = False
        # Grade of the answer waiting to be credited when Evaluate is left,
        # possibly via a pause
        self._pending_credit: Optional[bool] = None
        # Most recent answer, kept for review/evaluate feedback context
        self._last_answer_correct: Optional[bool] = None
        self._last_answer_label: Optional[str] = None

    # ─── Events ──────────────────────────────────────────────────────────────

    async def begin(self) -> TurnResult:
        """Render the Intro screen for a fresh session."""
        if self._started:
            raise InvalidTransition("Session already started")
        decision = TransitionResult(Phase.INTRO, SessionState())
        result = await self._run_turn(decision, TurnContext(
            phase=Phase.INTRO,
            directive=Directive.PHASE_CONTENT,
            state=decision.next_state,
            total_questions=self.total_questions,
        ))
        self._started = True
        return result

    async def select_option(self, option_id: int) -> TurnResult:
        """Grade the pending question and move to Evaluate."""
        self._require_started()
        question = self._pending_question
        if self.phase != Phase.ASK or not self._question_open or question is None:
            raise InvalidTransition(f"No question is awaiting an answer in '{self.phase.value}'")

        option = question.option(option_id)
        if option is None:
            raise MissingInput(f"Option {option_id} is not one of the current options")
        correct = question.is_correct(option_id)

        decision = self._advance(answer_selection=option_id)
        ctx = self._context(decision, answer_correct=correct, selected_label=option.label)
        result = await self._run_turn(decision, ctx, graded=(correct, option.label))
        logger.info(f"[{self.session_id}] answer q={self.state.question_index} correct={correct}")
        return result

    async def continue_(self) -> TurnResult:
        """Normal progression. While paused, Continue means resume."""
        self._require_started()
        if self.phase == Phase.PAUSED:
            return await self._command_turn(LearnerCommand.RESUME, None)

        decision = self._advance(answer_correct=self._pending_credit)
        return await self._run_turn(decision, self._context(decision))

    async def submit_command(self, text: str) -> TurnResult:
        """Free-text learner command. Unknown text gets a neutral redirect."""
        self._require_started()
        text = normalize_command_text(text, paused=self.phase == Phase.PAUSED)
        command = classify_command(text)
        if command == LearnerCommand.NONE:
            raise MissingInput("Command text is empty")
        return await self._command_turn(command, text)

    async def exit(self) -> TurnResult:
        self._require_started()
        return await self._command_turn(LearnerCommand.EXIT, None)

    async def restart(self) -> TurnResult:
        """Start over from Intro once the lesson is completed."""
        self._require_started()
        decision = self._advance(restart=True)
        return await self._run_turn(decision, self._context(decision))

    # ─── Turn Pipeline ───────────────────────────────────────────────────────

    async def _command_turn(self, command: LearnerCommand, text: Optional[str]) -> TurnResult:
        decision = self._advance(command=command)
        if self._pending_credit is not None and decision.next_phase not in (Phase.EVALUATE, Phase.PAUSED):
            decision = self._settle_evaluation(decision)
        ctx = self._context(
            decision,
            answer_correct=self._last_answer_correct if command == LearnerCommand.REVIEW else None,
            selected_label=self._last_answer_label if command == LearnerCommand.REVIEW else None,
            learner_text=text,
        )
        return await self._run_turn(decision, ctx)

    def _advance(self, **inputs) -> TransitionResult:
        if self._turn_active:
            raise TurnInProgress("A turn is already in progress for this session")
        decision = advance(self.phase, self.state, total_questions=self.total_questions, **inputs)
        try:
            decision.next_state.check(self.total_questions)
        except ValueError as e:
            raise InvalidTransition(f"Transition would break session invariants: {e}") from e
        return decision

    def _settle_evaluation(self, decision: TransitionResult) -> TransitionResult:
        """
        A command that takes the learner out of Evaluate (directly, or by
        resuming a pause entered from Evaluate) banks the graded answer the
        same way Continue does. Exit keeps the index and adds the credit.
        """
        if decision.next_phase == Phase.COMPLETED:
            return replace(decision, next_state=self.state.with_credit(self._pending_credit))
        left = advance(
            Phase.EVALUATE, self.state,
            answer_correct=self._pending_credit,
            total_questions=self.total_questions,
        )
        return replace(decision, next_phase=left.next_phase, next_state=left.next_state)

    def _context(self, decision: TransitionResult, **extra) -> TurnContext:
        return TurnContext(
            phase=decision.next_phase,
            directive=decision.directive,
            state=decision.next_state,
            total_questions=self.total_questions,
            question=self._pending_question,
            question_open=decision.next_phase == Phase.ASK and self._question_open,
            **extra,
        )

    async def _run_turn(
        self,
        decision: TransitionResult,
        ctx: TurnContext,
        graded: Optional[tuple[bool, str]] = None,
    ) -> TurnResult:
        if self._turn_active:
            raise TurnInProgress("A turn is already in progress for this session")
        self._turn_active = True
        try:
            content = await self._generate(ctx)
        finally:
            self._turn_active = False

        result = self._commit(decision, content, graded)
        self.last_result = result
        return result

    async def _generate(self, ctx: TurnContext) -> ValidatedContent:
        """Call the generator, retrying once with the validator's complaint."""
        attempts = 1 + max(self.max_retries, 0)
        for attempt in range(1, attempts + 1):
            messages = build_prompt(ctx)
            try:
                raw = await self._llm_call(messages)
            except (asyncio.TimeoutError, TimeoutError) as e:
                logger.warning(f"[{self.session_id}] generator timed out")
                raise ContentGenerationError(
                    "The AI tutor took too long to respond. Please try again."
                ) from e

            try:
                return validate_output(
                    raw, ctx.phase, pending=ctx.question if ctx.question_open else None,
                )
            except SchemaViolation as e:
                logger.warning(
                    f"[{self.session_id}] invalid {ctx.phase.value} content "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                ctx = replace(ctx, correction=str(e))

        raise ContentGenerationError(
            "The tutor returned an unexpected response. Please try again.", retryable=True,
        )

    def _commit(
        self,
        decision: TransitionResult,
        content: ValidatedContent,
        graded: Optional[tuple[bool, str]],
    ) -> TurnResult:
        """The single state mutation of a successful turn."""
        previous = self.phase
        self.phase = decision.next_phase
        self.state = decision.next_state
        if content.question is not None:
            self._pending_question = content.question

        # Paused keeps whatever was open or owed when the pause began
        if self.phase == Phase.ASK:
            self._question_open = True
        elif self.phase != Phase.PAUSED:
            self._question_open = False

        if graded is not None:
            self._pending_credit, self._last_answer_label = graded
            self._last_answer_correct = self._pending_credit
        elif self.phase not in (Phase.EVALUATE, Phase.PAUSED):
            self._pending_credit = None

        if self.phase == Phase.INTRO:
            self._pending_question = None
            self._last_answer_correct = None
            self._last_answer_label = None

        if decision.needs_attention:
            self.needs_attention = True
            logger.warning(f"[{self.session_id}] learner reported an issue; human review requested")

        logger.info(
            f"[{self.session_id}] {previous.value} → {self.phase.value} "
            f"[{decision.directive.value}] q={self.state.question_index} score={self.state.score}"
        )

        # Evaluate (and a pause taken from it) already shows the credit for the
        # answer just graded
        shown = self.state
        if self._pending_credit is not None:
            shown = self.state.with_credit(self._pending_credit)

        return TurnResult(
            phase=self.phase,
            state=shown,
            title=content.title,
            content=content.content,
            instructions=content.instructions,
            input_type=content.input_type,
            progress=progress_percent(self.phase, self.state.question_index, self.total_questions),
            options=list(content.options),
            needs_attention=self.needs_attention,
        )

    def _require_started(self) -> None:
        if not self._started:
            raise InvalidTransition("Session has not begun; call begin() first")

    def snapshot(self) -> dict:
        """Current committed position, for logging and the status endpoint."""
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "state": self.state.to_dict(),
            "total_questions": self.total_questions,
            "needs_attention": self.needs_attention,
            "turn_in_progress": self._turn_active,
        }
