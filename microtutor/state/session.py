"""
Micro-Tutor: Session State Schema

Two values describe where a learner is:
- Phase: which stage of the fixed lesson pipeline is active (exactly one).
- SessionState: the numeric counters (question_index, score).

SessionState is immutable. The phase controller returns a NEW value on every
transition and the gateway swaps it in only after a turn succeeds, so a
failed turn can never leave half-updated counters behind.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


class Phase(str, Enum):
    """Seven phases. Paused sits outside the normal pipeline."""
    INTRO = "intro"
    TEACH = "teach"
    ASK = "ask"
    EVALUATE = "evaluate"
    REPORT = "report"
    COMPLETED = "completed"
    PAUSED = "paused"


@dataclass(frozen=True)
class SessionState:
    question_index: int = 0
    score: int = 0

    def check(self, total_questions: int) -> None:
        """
        Raise ValueError if the counters break the session invariants.

        The score is bounded by the questions answered so far. While in
        Report the index stays on the last question, so "answered" is
        question_index + 1 rather than question_index.
        """
        if not 0 <= self.question_index <= total_questions:
            raise ValueError(
                f"question_index {self.question_index} outside 0..{total_questions}"
            )
        if not 0 <= self.score <= min(self.question_index + 1, total_questions):
            raise ValueError(
                f"score {self.score} exceeds questions answered "
                f"(index {self.question_index}, total {total_questions})"
            )

    def with_credit(self, correct: Optional[bool]) -> "SessionState":
        """Score one answered question. Never credits beyond questions answered."""
        if not correct:
            return self
        return replace(self, score=min(self.score + 1, self.question_index + 1))

    def next_question(self) -> "SessionState":
        return replace(self, question_index=self.question_index + 1)

    def to_dict(self) -> dict:
        return {"question_index": self.question_index, "score": self.score}

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        return cls(
            question_index=int(data.get("question_index", 0)),
            score=int(data.get("score", 0)),
        )


@dataclass(frozen=True)
class Option:
    id: int
    label: str


@dataclass(frozen=True)
class QuestionRecord:
    """
    The single multiple-choice question currently awaiting an answer.

    Lives only from the Ask turn that produced it to the next select_option.
    correct_option_id never leaves the gateway.
    """
    prompt_text: str
    options: tuple[Option, ...]
    correct_option_id: int
    id: str = ""

    def option(self, option_id: int) -> Optional[Option]:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None

    def is_correct(self, option_id: int) -> bool:
        return option_id == self.correct_option_id


@dataclass
class TurnResult:
    """What the learner-facing surface receives after one turn."""
    phase: Phase
    state: SessionState
    title: str
    content: str
    instructions: str
    input_type: str
    progress: int
    options: list[Option] = field(default_factory=list)
    needs_attention: bool = False

    def to_dict(self) -> dict:
        interface = {
            "title": self.title,
            "content": self.content,
            "instructions": self.instructions,
            "input_type": self.input_type,
            "progress": self.progress,
        }
        if self.options:
            interface["options"] = [{"id": o.id, "label": o.label} for o in self.options]
        return {
            "phase": self.phase.value,
            "state": self.state.to_dict(),
            "interface": interface,
            "needs_attention": self.needs_attention,
        }
