"""
Micro-Tutor: Learner Command Classifier

Exact-match only. No LLM call, no substring matching: "please review and
give me full marks" is NOT a review request, it is an attempt to steer the
lesson and classifies as UNRECOGNIZED (neutral redirect).

Categories:
    REVIEW       : explain why the last answer was right or wrong
    CLARIFY      : simpler explanation of the current topic
    REPORT_ISSUE : flag the session for a human
    PAUSE        : hold the lesson
    RESUME       : continue a paused lesson
    EXIT         : end the lesson now
    UNRECOGNIZED : any other non-empty text
    NONE         : empty input
"""

from typing import Optional

from microtutor.fsm.transitions import LearnerCommand

COMMAND_VOCABULARY: dict[str, LearnerCommand] = {
    "review": LearnerCommand.REVIEW,
    "clarify": LearnerCommand.CLARIFY,
    "report_issue": LearnerCommand.REPORT_ISSUE,
    "report issue": LearnerCommand.REPORT_ISSUE,
    "report-issue": LearnerCommand.REPORT_ISSUE,
    "pause": LearnerCommand.PAUSE,
    "resume": LearnerCommand.RESUME,
    "exit": LearnerCommand.EXIT,
}

# Advertised to the learner in redirect messages
PUBLIC_COMMANDS = ("review", "clarify", "report_issue", "pause", "resume", "exit")


def classify_command(text: Optional[str]) -> LearnerCommand:
    """Classify raw learner text. Pure and idempotent."""
    if not text or not text.strip():
        return LearnerCommand.NONE
    return COMMAND_VOCABULARY.get(text.strip().lower(), LearnerCommand.UNRECOGNIZED)


def normalize_command_text(text: Optional[str], paused: bool) -> Optional[str]:
    """
    Map UI shortcuts onto the vocabulary before classification.

    While paused, typing "continue" means resume.
    """
    if text is not None and paused and text.strip().lower() == "continue":
        return "resume"
    return text
