"""
Shared fakes for the generator. No network: the fake reads the TARGET line
the prompt builder writes and answers with a schema-valid screen for it.
"""

import json
from collections import deque

import pytest

CORRECT_ID = 2

WORDS = ["Bonjour", "Merci", "Au revoir", "S'il vous plaît"]


def target_of(messages: list[dict]) -> dict:
    for line in messages[-1]["content"].splitlines():
        if line.startswith("TARGET: "):
            return json.loads(line[len("TARGET: "):])
    raise AssertionError("prompt has no TARGET line")


def holds_question(messages: list[dict]) -> bool:
    return "PENDING QUESTION: " in messages[-1]["content"]


def screen_for(target: dict, correct_id: int = CORRECT_ID, serial: int = 0, held: bool = False) -> dict:
    payload = {
        "phase": target["phase"],
        "state": target["state"],
        "interface": {
            "title": f"{target['phase'].title()} screen",
            "content": f"Content for {target['phase']}",
            "instructions": "Press Continue.",
            "input_type": "none",
            "progress": target["progress"],
        },
    }
    if target["phase"] == "ask" and not held:
        payload["interface"]["content"] = f"Question #{serial}"
        payload["interface"]["input_type"] = "multiple_choice"
        payload["interface"]["options"] = [
            {"id": i, "label": f"{word} #{serial}" if serial else word}
            for i, word in enumerate(WORDS)
        ]
        payload["correct_answer_id"] = correct_id
    return payload


class FakeGenerator:
    """
    Async stand-in for OpenAIChat.generate_json.

    Queued items are returned first (strings verbatim, exceptions raised);
    after that every call gets a valid screen for the requested phase. Each
    freshly written question gets its own serial in its labels, and uses
    whatever correct_id is set at the time.
    """

    def __init__(self):
        self.calls: list[list[dict]] = []
        self.queue: deque = deque()
        self.correct_id = CORRECT_ID
        self.questions_written = 0

    def push(self, *items) -> None:
        self.queue.extend(items)

    async def __call__(self, messages: list[dict]) -> str:
        self.calls.append(messages)
        if self.queue:
            item = self.queue.popleft()
            if isinstance(item, BaseException):
                raise item
            return item
        target = target_of(messages)
        held = holds_question(messages)
        if target["phase"] == "ask" and not held:
            self.questions_written += 1
        return json.dumps(screen_for(
            target, self.correct_id, serial=self.questions_written, held=held,
        ))


@pytest.fixture
def generator():
    return FakeGenerator()
