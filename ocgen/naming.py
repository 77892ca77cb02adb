import re

DEFAULT_COMPONENT_NAME = "generated-component"
MAX_COMPONENT_NAME_LENGTH = 30

_DISALLOWED_RE = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE_RE = re.compile(r"\s+")
_EDGE_HYPHENS_RE = re.compile(r"^-+|-+$")


def component_name_from_prompt(prompt: str) -> str:
    """Derive the registry slug for a prompt.

    Truncation happens before the edge hyphens are trimmed, so the result never
    ends with a hyphen and never exceeds ``MAX_COMPONENT_NAME_LENGTH``.
    """
    if not prompt:
        return DEFAULT_COMPONENT_NAME
    slug = _DISALLOWED_RE.sub("", prompt.lower())
    slug = _WHITESPACE_RE.sub("-", slug)
    slug = slug[:MAX_COMPONENT_NAME_LENGTH]
    slug = _EDGE_HYPHENS_RE.sub("", slug)
    return slug or DEFAULT_COMPONENT_NAME
