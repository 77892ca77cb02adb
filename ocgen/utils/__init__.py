from typing import Optional

DEFAULT_OUTPUT_LIMIT = 4000


def mask_token(text: str, token: str) -> str:
    return text.replace(token, f"{token[:4]}****") if token else text


def trim_output(output: Optional[str], limit: int = DEFAULT_OUTPUT_LIMIT) -> str:
    """Keep the tail of command output, where build and install errors end up."""
    text = output or ""
    if len(text) <= limit:
        return text
    return f"... [{len(text) - limit} characters truncated]\n" + text[-limit:]
