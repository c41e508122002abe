import re

LINE_ENDINGS_RE = re.compile(r"\r\n|\r")
WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Standardise line endings, collapse all whitespace runs to a single
    space and trim the result."""
    if not text:
        return ""
    text = LINE_ENDINGS_RE.sub("\n", text)
    return WHITESPACE_RE.sub(" ", text).strip()
