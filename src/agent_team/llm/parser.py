"""Output parser for agent-team.

Language models are asked to answer with a JSON object, but regularly
wrap it in prose or code fences, leave trailing commas or forget to
quote keys. The parser tries a strict parse first and then a sequence
of textual repairs before giving up.
"""

import json
import re
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..models.output import ParsedOutput, ParseOutcome, ParseResult
from ..utils.logging import get_logger

logger = get_logger(__name__)

FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
# '}' or ']' directly followed (after whitespace) by '{' or '"' -> missing comma
MISSING_COMMA_PATTERN = re.compile(r"([}\]])(\s*)([{\"])")
TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")
# Bare or single-quoted key, matched right after a '{' or ',' outside strings
UNQUOTED_KEY_PATTERN = re.compile(r"(\s*)(?:'([A-Za-z0-9_]+)'|([A-Za-z_][A-Za-z0-9_]*))\s*:")


def quote_bare_keys(text: str) -> str:
    """Double-quote bare and single-quoted object keys, leaving string contents alone."""
    out: list[str] = []
    in_string = False
    escaped = False
    i = 0
    while i < len(text):
        ch = text[i]
        out.append(ch)
        i += 1
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{,":
            match = UNQUOTED_KEY_PATTERN.match(text, i)
            if match:
                out.append(f'{match.group(1)}"{match.group(2) or match.group(3)}":')
                i = match.end()
    return "".join(out)


class OutputParser:
    """Turns raw model text into a ``ParsedOutput``.

    ``parse`` never raises; failures are reported through the outcome.
    """

    def parse(self, raw_text: Optional[str]) -> ParseResult:
        """Parse one model response.

        Args:
            raw_text: Text returned by the model

        Returns:
            ParseResult with outcome PARSED (strict JSON), RECOVERED (after
            repairs) or FAILED (with the original input and the error)
        """
        raw = raw_text or ""
        if not raw.strip():
            return ParseResult(outcome=ParseOutcome.FAILED, raw=raw, error="empty response")

        strict_error: Optional[str] = None
        try:
            return self._build(json.loads(raw), raw, ParseOutcome.PARSED)
        except json.JSONDecodeError as e:
            strict_error = str(e)
        except _NotAnObject as e:
            strict_error = str(e)

        candidate = self.sanitize(raw)
        if candidate is None:
            return ParseResult(
                outcome=ParseOutcome.FAILED, raw=raw, error=f"no JSON object found ({strict_error})"
            )

        try:
            result = self._build(json.loads(candidate), raw, ParseOutcome.RECOVERED)
        except (json.JSONDecodeError, _NotAnObject) as e:
            logger.debug(f"Could not recover model output: {e}")
            return ParseResult(outcome=ParseOutcome.FAILED, raw=raw, error=str(e))

        logger.debug("Recovered malformed model output")
        return result

    def sanitize(self, raw: str) -> Optional[str]:
        """Apply the textual repairs; None when no object is present."""
        text = raw
        fenced = FENCE_PATTERN.search(text)
        if fenced:
            text = fenced.group(1)

        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            return None
        text = text[start : end + 1]

        text = text.replace("\\n", "").replace("\r", " ").replace("\n", " ")
        text = MISSING_COMMA_PATTERN.sub(r"\1,\2\3", text)
        text = TRAILING_COMMA_PATTERN.sub(r"\1", text)
        text = quote_bare_keys(text)
        return text

    def _build(self, value: Any, raw: str, outcome: ParseOutcome) -> ParseResult:
        if not isinstance(value, dict):
            raise _NotAnObject(f"expected a JSON object, got {type(value).__name__}")
        try:
            output = ParsedOutput.model_validate(value)
        except PydanticValidationError as e:
            return ParseResult(outcome=ParseOutcome.FAILED, raw=raw, error=str(e))
        return ParseResult(outcome=outcome, output=output, raw=raw)


class _NotAnObject(ValueError):
    """Parsed JSON is valid but not an object."""
