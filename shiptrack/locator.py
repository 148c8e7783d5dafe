"""Locate an embedded JSON value inside an arbitrary text buffer.

The scraper's stdout may be polluted by warnings, library noise or log lines
printed before the payload. Two strategies are tried in order:

1. Sentinel mode: the producer wraps the payload in ``---JSON-START---`` and
   ``---JSON-END---`` lines, and everything strictly between them is returned.
2. Balanced scan: starting at the first ``{`` or ``[`` (whichever comes
   first), count nesting depth while skipping quoted strings, and return the
   substring that closes back to depth zero.

Locating is purely textual. Whether the candidate actually decodes is the
caller's concern.
"""

START_MARKER = "---JSON-START---"
END_MARKER = "---JSON-END---"

_PAIRS = {"{": "}", "[": "]"}
_QUOTES = ("\"", "'")


def extract_between_sentinels(text: str) -> str | None:
    """Return the trimmed text between the sentinel markers, if both exist.

    The end marker must appear after the start marker; otherwise the
    sentinels are ignored and None is returned.
    """
    start = text.find(START_MARKER)
    end = text.find(END_MARKER)
    if start == -1 or end == -1 or end <= start:
        return None

    return text[start + len(START_MARKER) : end].strip()


def scan_balanced(text: str) -> str | None:
    """Return the first balanced ``{...}`` or ``[...]`` substring.

    Quote characters (double and single) open an inert region in which
    brackets are ignored until the same quote character closes it. A
    backslash inside a quoted region escapes the next character.

    Args:
        text: Arbitrary text buffer.

    Returns:
        The balanced substring, or None when there is no opening bracket or
        the scan never returns to depth zero.
    """
    candidates = [index for index in (text.find("{"), text.find("[")) if index != -1]
    if not candidates:
        return None

    open_index = min(candidates)
    opener = text[open_index]
    closer = _PAIRS[opener]

    depth = 0
    quote: str | None = None
    escaped = False

    for index in range(open_index, len(text)):
        char = text[index]

        if quote is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in _QUOTES:
            quote = char
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[open_index : index + 1]

    return None


def locate_json(text: str) -> str | None:
    """Return the best candidate for a single JSON value in ``text``.

    Sentinels take priority over the balanced scan, even when the text before
    the start marker contains bracketed noise.
    """
    if not text:
        return None

    between = extract_between_sentinels(text)
    if between is not None:
        return between

    return scan_balanced(text)
