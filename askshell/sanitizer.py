# askshell/sanitizer.py

import re
import logging

logger = logging.getLogger(__name__)

_THINK_BLOCK_PATTERN = re.compile(r"^<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_THINK_OPEN = "<think>"
_FENCE = "```"
_QUOTE_CHARS = ("'", '"')


def _strip_think_block(text: str) -> str:
    """Removes a leading <think>...</think> block emitted by reasoning models.

    A block that is never closed means the reply was cut off mid-reasoning,
    so nothing after it is a command.
    """
    text = _THINK_BLOCK_PATTERN.sub("", text, count=1)
    if text[:len(_THINK_OPEN)].lower() == _THINK_OPEN:
        return ""
    return text


def _unwrap_code_fence(text: str) -> str:
    """
    Removes one surrounding ``` pair when it wraps the entire text.

    An info string directly after the opening fence (```bash) is dropped only
    when a newline follows it, so a one-line fence like ```ls``` keeps `ls`.
    """
    if len(text) < 2 * len(_FENCE) or not (text.startswith(_FENCE) and text.endswith(_FENCE)):
        return text
    inner = text[len(_FENCE):-len(_FENCE)]
    if _FENCE in inner:
        return text
    first_line, newline, rest = inner.partition("\n")
    if newline and re.fullmatch(r"[\w+.-]*", first_line.strip()):
        inner = rest
    return inner


def _unwrap_pair(text: str, delimiter: str) -> str:
    if len(text) < 2 or not (text.startswith(delimiter) and text.endswith(delimiter)):
        return text
    inner = text[1:-1]
    # `a` && `b` starts and ends with a backtick but is not wrapped by one pair.
    if delimiter in inner:
        return text
    return inner


def _sanitize_once(text: str) -> str:
    text = _strip_think_block(text.strip()).strip()
    text = _unwrap_code_fence(text).strip()
    text = _unwrap_pair(text, "`").strip()
    for quote in _QUOTE_CHARS:
        unwrapped = _unwrap_pair(text, quote)
        if unwrapped != text:
            return unwrapped.strip()
    return text


def sanitize(raw_text: str) -> str:
    """
    Recovers a bare command string from raw model output.

    Trims whitespace, then peels wrappers from the outside in: a leading
    reasoning block, one code-fence pair, one backtick pair, one quote pair.
    Interior content is never rewritten. The steps repeat until nothing
    changes, so sanitize(sanitize(x)) == sanitize(x) for every input.
    """
    if not raw_text:
        return ""
    current = raw_text
    while True:
        cleaned = _sanitize_once(current)
        if cleaned == current:
            break
        current = cleaned
    if current != raw_text:
        logger.debug(f"Sanitized model output: {raw_text!r} -> {current!r}")
    return current
