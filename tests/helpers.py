import json
from typing import Any


def sse_body(*events: Any) -> str:
    """Qwen-style event stream carrying the given events, terminated by [DONE]."""
    lines = [f"data: {json.dumps(event, ensure_ascii=False)}" for event in events]
    lines.append("data: [DONE]")
    return "\n".join(lines) + "\n"


def assistant(text: str) -> dict:
    return {"contents": [{"role": "assistant", "contentType": "text", "content": text}]}
