"""
Micro-Tutor: Generator Output Validator

Every generator response passes through here BEFORE anything is committed.
This is the only enforceable safety boundary: whatever the prompt asks of
the model, the shape below is checked in code.

Rules:
1. Exactly one JSON object (markdown fences tolerated and stripped)
2. `interface` with title/content strings
3. Ask: input_type "multiple_choice", 3-4 options with distinct ids and
   non-empty labels, correct_answer_id naming one of them
4. Every other phase: input_type "none", no options, no correct_answer_id

The generator's own `phase`/`state` echo is parsed but never trusted.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ValidationError

from microtutor.config import MAX_OPTIONS, MIN_OPTIONS
from microtutor.state.session import Option, Phase, QuestionRecord

logger = logging.getLogger("microtutor.validator")


class SchemaViolation(ValueError):
    """Generator output does not match the schema for the expected phase."""


# ─── Wire Schema ─────────────────────────────────────────────────────────────

class OptionPayload(BaseModel):
    id: int
    label: str


class StatePayload(BaseModel):
    question_index: Optional[int] = None
    score: Optional[int] = None


class InterfacePayload(BaseModel):
    title: str
    content: str
    instructions: str = ""
    input_type: str = "none"
    options: Optional[list[OptionPayload]] = None
    progress: Optional[float] = None


class GeneratorPayload(BaseModel):
    phase: Optional[str] = None
    state: Optional[StatePayload] = None
    interface: InterfacePayload
    correct_answer_id: Optional[int] = None


@dataclass
class ValidatedContent:
    """Display text accepted from the generator, plus the hidden question key."""
    title: str
    content: str
    instructions: str
    input_type: str
    options: list[Option] = field(default_factory=list)
    question: Optional[QuestionRecord] = None


# ─── Parsing ─────────────────────────────────────────────────────────────────

def strip_code_fences(raw: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    text = raw.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        if first_newline != -1:
            text = text[first_newline + 1:]
        else:
            text = text[3:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()
    return text


def parse_payload(raw: Optional[str]) -> GeneratorPayload:
    if not raw or not raw.strip():
        raise SchemaViolation("empty response")

    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaViolation(f"invalid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise SchemaViolation("response must be a single JSON object")

    try:
        return GeneratorPayload.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise SchemaViolation(f"schema mismatch: {problems}") from e


# ─── Phase Rules ─────────────────────────────────────────────────────────────

def _check_question(payload: GeneratorPayload) -> QuestionRecord:
    iface = payload.interface
    if iface.input_type != "multiple_choice":
        raise SchemaViolation("ask phase requires input_type 'multiple_choice'")

    options = iface.options or []
    if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
        raise SchemaViolation(
            f"ask phase requires {MIN_OPTIONS}-{MAX_OPTIONS} options, got {len(options)}"
        )

    ids = [o.id for o in options]
    if len(set(ids)) != len(ids):
        raise SchemaViolation("option ids must be distinct")
    if any(not o.label.strip() for o in options):
        raise SchemaViolation("option labels must not be empty")

    if payload.correct_answer_id is None:
        raise SchemaViolation("ask phase requires correct_answer_id")
    if payload.correct_answer_id not in ids:
        raise SchemaViolation(
            f"correct_answer_id {payload.correct_answer_id} is not one of the option ids {ids}"
        )

    return QuestionRecord(
        prompt_text=iface.content,
        options=tuple(Option(id=o.id, label=o.label.strip()) for o in options),
        correct_option_id=payload.correct_answer_id,
    )


def _check_plain(payload: GeneratorPayload, what: str) -> None:
    if payload.correct_answer_id is not None:
        raise SchemaViolation(f"{what} must not carry correct_answer_id")
    # An empty list is the same as no options
    if payload.interface.options:
        raise SchemaViolation(f"{what} must not carry options")
    if payload.interface.input_type != "none":
        raise SchemaViolation(f"{what} requires input_type 'none'")


def validate_output(
    raw: Optional[str],
    phase: Phase,
    pending: Optional[QuestionRecord] = None,
) -> ValidatedContent:
    """
    Parse and check one generator response against the expected phase.

    With `pending` set, an Ask response is text about that already-posed
    question: it must carry no options of its own, and the pending options
    and correct id are attached to the result unchanged.

    Raises:
        SchemaViolation: with a short reason suitable for a corrective prompt
    """
    phase = Phase(phase)
    payload = parse_payload(raw)

    if not payload.interface.content.strip():
        raise SchemaViolation("interface.content must not be empty")

    if payload.phase is not None and payload.phase != phase.value:
        # Display echo only; the controller's phase wins
        logger.info(f"Generator echoed phase '{payload.phase}', expected '{phase.value}'")

    question = None
    if phase == Phase.ASK and pending is not None:
        _check_plain(payload, "a response about the pending question")
        question = pending
    elif phase == Phase.ASK:
        question = _check_question(payload)
    else:
        _check_plain(payload, f"{phase.value} phase")

    iface = payload.interface
    return ValidatedContent(
        title=iface.title.strip(),
        content=iface.content.strip(),
        instructions=iface.instructions.strip(),
        input_type="multiple_choice" if question else iface.input_type,
        options=list(question.options) if question else [],
        question=question,
    )
