"""
Micro-Tutor: Phase Controller

Pure transition function for the lesson pipeline:

    intro → teach → ask ⇄ evaluate → report → completed
                         ↘ paused ↗

Python decides the phase and the counters. The generator only writes words.
A learner command is checked BEFORE the normal table and may replace the
computed next phase entirely. Nothing here performs I/O.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from microtutor.config import TOTAL_QUESTIONS
from microtutor.errors import InvalidTransition, MissingInput
from microtutor.state.session import Phase, SessionState

logger = logging.getLogger("microtutor.fsm")


# ─── Inputs ──────────────────────────────────────────────────────────────────

class LearnerCommand(str, Enum):
    REVIEW = "review"
    CLARIFY = "clarify"
    REPORT_ISSUE = "report_issue"
    PAUSE = "pause"
    RESUME = "resume"
    EXIT = "exit"
    UNRECOGNIZED = "unrecognized"
    NONE = "none"


class Directive(str, Enum):
    """What kind of content the gateway must request for the next phase."""
    PHASE_CONTENT = "phase_content"
    REVIEW = "review"
    CLARIFY = "clarify"
    REDIRECT_NEUTRAL = "redirect_neutral"
    PAUSED = "paused"
    ISSUE_REPORTED = "issue_reported"
    RESUME = "resume"
    FAREWELL = "farewell"


@dataclass(frozen=True)
class TransitionResult:
    """
    Result of one controller decision.

    next_phase / next_state: authoritative values to commit
    directive: content the generator must produce for next_phase
    needs_attention: a human should look at this session (report_issue)
    """
    next_phase: Phase
    next_state: SessionState
    directive: Directive = Directive.PHASE_CONTENT
    needs_attention: bool = False


# ─── Fixed Transitions ───────────────────────────────────────────────────────
# Rows whose outcome depends only on the current phase. Evaluate and Ask are
# conditional and handled in _normal_transition.

NORMAL_NEXT: dict[Phase, Phase] = {
    Phase.INTRO: Phase.TEACH,
    # Teach is only entered with zeroed counters (fresh session or restart),
    # so the first question index is already 0 here.
    Phase.TEACH: Phase.ASK,
    Phase.REPORT: Phase.COMPLETED,
}

# Commands that force a phase no matter where the learner is
FORCED: dict[LearnerCommand, tuple[Phase, Directive]] = {
    LearnerCommand.PAUSE: (Phase.PAUSED, Directive.PAUSED),
    LearnerCommand.REPORT_ISSUE: (Phase.PAUSED, Directive.ISSUE_REPORTED),
    LearnerCommand.EXIT: (Phase.COMPLETED, Directive.FAREWELL),
}


# ─── Controller ──────────────────────────────────────────────────────────────

def advance(
    current: Phase,
    state: SessionState,
    *,
    answer_selection: Optional[int] = None,
    command: Optional[LearnerCommand] = None,
    answer_correct: Optional[bool] = None,
    restart: bool = False,
    total_questions: int = TOTAL_QUESTIONS,
) -> TransitionResult:
    """
    Compute the next phase, state and directive.

    Args:
        current: Phase the session is in now
        state: Counters before this turn (never mutated)
        answer_selection: Option id picked by the learner (Ask only)
        command: Classified learner command, if any
        answer_correct: Grade of the answer submitted in the preceding Ask
            turn. Read only when leaving Evaluate.
        restart: Start over from Intro (Completed only)
        total_questions: Questions in this lesson

    Raises:
        InvalidTransition: Completed without restart, restart elsewhere,
            leaving Paused without resume, or an answer outside Ask
        MissingInput: Ask with neither an answer nor a command
    """
    current = Phase(current)
    command = LearnerCommand(command) if command is not None else LearnerCommand.NONE

    if current == Phase.COMPLETED:
        if not restart:
            raise InvalidTransition("Lesson is completed; only a restart is allowed")
        result = TransitionResult(Phase.INTRO, SessionState())
    elif restart:
        raise InvalidTransition(f"Restart requested in phase '{current.value}'")
    elif command != LearnerCommand.NONE:
        result = _command_override(current, state, command, total_questions)
    else:
        result = _normal_transition(current, state, answer_selection, answer_correct, total_questions)

    logger.debug(
        f"advance: {current.value} → {result.next_phase.value} "
        f"[{result.directive.value}] q={result.next_state.question_index} "
        f"score={result.next_state.score}"
    )
    return result


def _command_override(
    current: Phase,
    state: SessionState,
    command: LearnerCommand,
    total_questions: int,
) -> TransitionResult:
    """Commands never change the counters."""
    if command in FORCED:
        phase, directive = FORCED[command]
        return TransitionResult(
            phase, state, directive,
            needs_attention=command == LearnerCommand.REPORT_ISSUE,
        )

    if command in (LearnerCommand.REVIEW, LearnerCommand.CLARIFY):
        directive = Directive(command.value)
        # Evaluate is the one place where normal progression would move on to
        # the next question; the override still lands there.
        if current == Phase.EVALUATE and state.question_index < total_questions - 1:
            return TransitionResult(Phase.ASK, state, directive)
        return TransitionResult(current, state, directive)

    if command == LearnerCommand.RESUME and current == Phase.PAUSED:
        return TransitionResult(_resume_target(state, total_questions), state, Directive.RESUME)

    # UNRECOGNIZED, or resume while not paused
    return TransitionResult(current, state, Directive.REDIRECT_NEUTRAL)


def _resume_target(state: SessionState, total_questions: int) -> Phase:
    if state.question_index < total_questions:
        return Phase.ASK
    if state.question_index == total_questions:
        return Phase.REPORT
    # Unreachable while the index stays within 0..total. Kept so a caller
    # that breaks that invariant lands back in teaching, not in an error.
    logger.warning(f"Resume with question_index={state.question_index} > {total_questions}")
    return Phase.TEACH


def _normal_transition(
    current: Phase,
    state: SessionState,
    answer_selection: Optional[int],
    answer_correct: Optional[bool],
    total_questions: int,
) -> TransitionResult:
    if current == Phase.ASK:
        if answer_selection is None:
            raise MissingInput("An answer selection or a command is required in 'ask'")
        # Score is committed when Evaluate is left, not here
        return TransitionResult(Phase.EVALUATE, state)

    if answer_selection is not None:
        raise InvalidTransition(f"Answer selection is only accepted in 'ask', not '{current.value}'")

    if current == Phase.EVALUATE:
        credited = state.with_credit(answer_correct)
        if state.question_index < total_questions - 1:
            return TransitionResult(Phase.ASK, credited.next_question())
        return TransitionResult(Phase.REPORT, credited)

    if current == Phase.PAUSED:
        raise InvalidTransition("A paused lesson continues only with 'resume'")

    return TransitionResult(NORMAL_NEXT[current], state)


# ─── Progress ────────────────────────────────────────────────────────────────

def progress_percent(phase: Phase, question_index: int, total_questions: int = TOTAL_QUESTIONS) -> int:
    """
    Progress bar value for the UI. Display only, never authoritative.

    intro 0, teach 10, ask/evaluate (and paused) scale 10→100 with the
    question index, report/completed 100. Halves round up.
    """
    phase = Phase(phase)
    if phase == Phase.INTRO:
        return 0
    if phase == Phase.TEACH:
        return 10
    if phase in (Phase.REPORT, Phase.COMPLETED):
        return 100
    if total_questions <= 0:
        return 10
    return 10 + math.floor(question_index / total_questions * 90 + 0.5)
