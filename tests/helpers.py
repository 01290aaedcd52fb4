import json

from mindgraph.ai_engine import ReasoningClient, ReasoningError


class FakeReasoningClient(ReasoningClient):
    """Replays scripted responses in order; Exceptions in the script are raised."""

    def __init__(self, responses=None, configured=True):
        self.responses = list(responses or [])
        self.prompts = []
        self.calls = []
        self.configured = configured

    @property
    def is_configured(self):
        return self.configured

    async def complete(self, prompt, *, temperature=0.2, max_tokens=1500, json_mode=True):
        self.prompts.append(prompt)
        self.calls.append({"temperature": temperature, "max_tokens": max_tokens, "json_mode": json_mode})
        if not self.responses:
            raise ReasoningError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def extraction_json(entities, relationships=()):
    """Extraction response body; entities as (name, description, type) tuples."""
    return json.dumps({
        "entities": [
            {"id": f"temp_id_{i}", "name": name, "description": desc, "type": etype}
            for i, (name, desc, etype) in enumerate(entities, start=1)
        ],
        "relationships": [
            {"sourceName": s, "targetName": t, "label": label} for s, t, label in relationships
        ],
    })


def iter_tree(node):
    """Every node of a hierarchical tree in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))
