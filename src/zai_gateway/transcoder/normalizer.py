"""Clean upstream markup out of thinking and answer fragments."""

import re

STRIP_MODE = "strip"
DETAILS_END_TAG = "</details>"

_SUMMARY_BLOCK = re.compile(r"<summary>.*?</summary>", re.DOTALL)
_CLOSING_WRAPPERS = re.compile(r"</thinking>|<Full>|</Full>")
_DETAILS_TAGS = re.compile(r"<details[^>]*>|</details>")
_BLOCKQUOTE_PREFIX = "> "


def normalize_content(text: str | None, mode: str | None = STRIP_MODE) -> str:
    """Strip vendor markup from a single fragment.

    Args:
        text: Raw fragment from the upstream stream.
        mode: `"strip"` also removes `<details>` wrappers; any other value
            leaves them in place.

    Returns:
        The cleaned fragment, trimmed. Empty input yields `""`.
    """
    if not text:
        return ""

    text = _SUMMARY_BLOCK.sub("", text)
    text = _CLOSING_WRAPPERS.sub("", text).strip()
    if mode == STRIP_MODE:
        text = _DETAILS_TAGS.sub("", text)
    if text.startswith(_BLOCKQUOTE_PREFIX):
        text = text[len(_BLOCKQUOTE_PREFIX):]
    text = text.replace("\n" + _BLOCKQUOTE_PREFIX, "\n")
    return text.strip()


def strip_replayed_thinking(text: str) -> str:
    """Drop the thinking replay the upstream prepends to the first answer frame.

    Everything up to and including the first `</details>` is the replay;
    the suffix is the real answer. Text without the tag is returned as-is.
    """
    index = text.find(DETAILS_END_TAG)
    if index == -1:
        return text
    return text[index + len(DETAILS_END_TAG):]
