"""Server-Sent Events framing for streamed rounds.

A frame is ``event: <name>\\n`` (omitted when the name is empty) followed by
``data: <payload>\\n\\n``. String payloads are sent verbatim, anything else as
compact JSON with ``<``, ``>``, ``&`` and the line/paragraph separators
escaped, which is what the browser client was written against.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel

ANSWER = "answer"
PHASE = "phase"
DEBATE = "debate"
VOTE = "vote"
ROUND_END = "round_end"
ERROR = "error"

ANSWERS_DONE = "answers_done"
DEBATE_DONE = "debate_done"

_HTML_SAFE = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def encode_json(payload: Any) -> str:
    """Compact JSON for *payload*; pydantic models are dumped first."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _HTML_SAFE.items():
        if char in text:
            text = text.replace(char, escaped)
    return text


def format_sse(event: str, payload: Any) -> str:
    data = payload if isinstance(payload, str) else encode_json(payload)
    head = f"event: {event}\n" if event else ""
    return f"{head}data: {data}\n\n"
