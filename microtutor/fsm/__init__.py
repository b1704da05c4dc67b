"""
Micro-Tutor: FSM Package

Deterministic phase controller and progress computation.
"""
from microtutor.fsm.transitions import (
    Directive,
    LearnerCommand,
    TransitionResult,
    advance,
    progress_percent,
)

__all__ = ["Directive", "LearnerCommand", "TransitionResult", "advance", "progress_percent"]
