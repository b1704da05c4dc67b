"""
Tests for validator.py: generator output shape checks per phase.
"""

import copy
import json

import pytest

from microtutor.state.session import Option, Phase, QuestionRecord
from microtutor.tutor.validator import SchemaViolation, strip_code_fences, validate_output

ASK = {
    "phase": "ask",
    "state": {"question_index": 0, "score": 0},
    "interface": {
        "title": "Question 1",
        "content": "What does 'merci' mean?",
        "instructions": "Pick one.",
        "input_type": "multiple_choice",
        "options": [
            {"id": 0, "label": "Hello"},
            {"id": 1, "label": "Thank you"},
            {"id": 2, "label": "Goodbye"},
        ],
        "progress": 10,
    },
    "correct_answer_id": 1,
}

TEACH = {
    "phase": "teach",
    "state": {"question_index": 0, "score": 0},
    "interface": {
        "title": "New words",
        "content": "Bonjour means hello.",
        "instructions": "Press Continue.",
        "input_type": "none",
        "progress": 10,
    },
}


def variant(base, **changes):
    data = copy.deepcopy(base)
    for path, value in changes.items():
        target = data
        keys = path.split("__")
        for key in keys[:-1]:
            target = target[key]
        if value is ...:
            target.pop(keys[-1], None)
        else:
            target[keys[-1]] = value
    return json.dumps(data)


# ─── Parsing ─────────────────────────────────────────────────────────────────

class TestParsing:
    def test_plain_json(self):
        v = validate_output(json.dumps(TEACH), Phase.TEACH)
        assert v.title == "New words"
        assert v.question is None

    def test_json_fence(self):
        raw = "```json\n" + json.dumps(TEACH) + "\n```"
        assert validate_output(raw, Phase.TEACH).content == "Bonjour means hello."

    def test_bare_fence(self):
        assert strip_code_fences("```\n{}\n```") == "{}"

    @pytest.mark.parametrize("raw", [None, "", "   ", "not json", "[1, 2]", '"text"',
                                     'Here you go: {"interface": {}}'])
    def test_rejects_non_objects(self, raw):
        with pytest.raises(SchemaViolation):
            validate_output(raw, Phase.TEACH)

    def test_missing_interface(self):
        with pytest.raises(SchemaViolation, match="interface"):
            validate_output(variant(TEACH, interface=...), Phase.TEACH)

    def test_empty_content(self):
        with pytest.raises(SchemaViolation):
            validate_output(variant(TEACH, interface__content="  "), Phase.TEACH)

    def test_phase_and_state_echo_optional(self):
        v = validate_output(variant(TEACH, phase=..., state=...), Phase.TEACH)
        assert v.content == "Bonjour means hello."

    def test_wrong_phase_echo_is_ignored(self):
        v = validate_output(variant(TEACH, phase="report"), Phase.TEACH)
        assert v.title == "New words"


# ─── Ask Phase ───────────────────────────────────────────────────────────────

class TestAsk:
    def test_valid_question(self):
        v = validate_output(json.dumps(ASK), Phase.ASK)
        assert v.input_type == "multiple_choice"
        assert [o.id for o in v.options] == [0, 1, 2]
        assert v.question.correct_option_id == 1
        assert v.question.prompt_text == "What does 'merci' mean?"

    def test_four_options(self):
        opts = ASK["interface"]["options"] + [{"id": 3, "label": "Please"}]
        assert len(validate_output(variant(ASK, interface__options=opts), Phase.ASK).options) == 4

    def test_missing_options(self):
        with pytest.raises(SchemaViolation, match="options"):
            validate_output(variant(ASK, interface__options=...), Phase.ASK)

    def test_too_few_options(self):
        with pytest.raises(SchemaViolation):
            validate_output(variant(ASK, interface__options=ASK["interface"]["options"][:2]), Phase.ASK)

    def test_too_many_options(self):
        opts = [{"id": i, "label": f"L{i}"} for i in range(5)]
        with pytest.raises(SchemaViolation):
            validate_output(variant(ASK, interface__options=opts), Phase.ASK)

    def test_duplicate_ids(self):
        opts = [{"id": 0, "label": "a"}, {"id": 0, "label": "b"}, {"id": 1, "label": "c"}]
        with pytest.raises(SchemaViolation, match="distinct"):
            validate_output(variant(ASK, interface__options=opts), Phase.ASK)

    def test_blank_label(self):
        opts = [{"id": 0, "label": " "}, {"id": 1, "label": "b"}, {"id": 2, "label": "c"}]
        with pytest.raises(SchemaViolation):
            validate_output(variant(ASK, interface__options=opts), Phase.ASK)

    def test_missing_correct_id(self):
        with pytest.raises(SchemaViolation, match="correct_answer_id"):
            validate_output(variant(ASK, correct_answer_id=...), Phase.ASK)

    def test_correct_id_not_an_option(self):
        with pytest.raises(SchemaViolation):
            validate_output(variant(ASK, correct_answer_id=7), Phase.ASK)

    def test_wrong_input_type(self):
        with pytest.raises(SchemaViolation):
            validate_output(variant(ASK, interface__input_type="none"), Phase.ASK)


# ─── Pending Question ────────────────────────────────────────────────────────

PENDING = QuestionRecord(
    prompt_text="What does 'merci' mean?",
    options=(Option(0, "Hello"), Option(1, "Thank you"), Option(2, "Goodbye")),
    correct_option_id=1,
)

ABOUT_PENDING = dict(TEACH, phase="ask", interface=dict(TEACH["interface"], content="Merci is said after a gift."))


class TestPendingQuestion:
    def test_text_only_keeps_pending_options(self):
        v = validate_output(json.dumps(ABOUT_PENDING), Phase.ASK, pending=PENDING)
        assert v.question is PENDING
        assert v.options == list(PENDING.options)
        assert v.input_type == "multiple_choice"
        assert v.content == "Merci is said after a gift."

    def test_new_options_rejected(self):
        with pytest.raises(SchemaViolation, match="pending question"):
            validate_output(json.dumps(ASK), Phase.ASK, pending=PENDING)

    def test_ignored_outside_ask(self):
        v = validate_output(json.dumps(TEACH), Phase.TEACH, pending=PENDING)
        assert v.question is None
        assert v.options == []


# ─── Other Phases ────────────────────────────────────────────────────────────

class TestPlainPhases:
    @pytest.mark.parametrize("phase", [Phase.INTRO, Phase.TEACH, Phase.EVALUATE, Phase.REPORT,
                                       Phase.COMPLETED, Phase.PAUSED])
    def test_question_payload_rejected_outside_ask(self, phase):
        with pytest.raises(SchemaViolation):
            validate_output(json.dumps(ASK), phase)

    def test_correct_id_rejected(self):
        with pytest.raises(SchemaViolation, match="correct_answer_id"):
            validate_output(variant(TEACH, correct_answer_id=1), Phase.EVALUATE)

    def test_options_rejected(self):
        with pytest.raises(SchemaViolation, match="options"):
            validate_output(variant(TEACH, interface__options=ASK["interface"]["options"]), Phase.REPORT)

    def test_empty_options_list_allowed(self):
        v = validate_output(variant(TEACH, interface__options=[]), Phase.REPORT)
        assert v.options == []

    def test_multiple_choice_rejected(self):
        with pytest.raises(SchemaViolation):
            validate_output(variant(TEACH, interface__input_type="multiple_choice"), Phase.TEACH)
