"""Turn raw model responses into parsed JSON documents.

The interpreter never raises for model-side problems; it returns a ``Failure``
carrying the classified error so the planner can abort cleanly. Schema
conformance is not re-validated here: the request's declared response schema
is the contract, and callers use the parsed tree as they see fit.
"""

import json
import re
from typing import Any, Optional

from genplan.ai_providers.base import FinishReason, GenerationResponse
from genplan.utils.logger import get_logger

from .errors import ErrorKind, Failure, Result, Success, UserFacingError, fail

logger = get_logger(__name__)

FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")

# Probabilities at or below this level are not reported as concerns
LOW_SEVERITY_LEVELS = frozenset({"NEGLIGIBLE", "LOW", "HARM_PROBABILITY_UNSPECIFIED"})

EXCERPT_LENGTH = 300

BRACKET_PAIRS = {"{": "}", "[": "]"}


class JSONExtractionError(ValueError):
    """Raised by ``extract_json`` when no JSON candidate exists or it does not parse."""

    def __init__(self, message: str, kind: ErrorKind):
        super().__init__(message)
        self.kind = kind


def check_safety(response: GenerationResponse) -> Optional[UserFacingError]:
    """Return a SAFETY_BLOCKED error if the service refused the prompt."""
    feedback = response.safety
    if feedback is None or not feedback.block_reason:
        return None

    message = f"The request was blocked by the safety policy. Reason: {feedback.block_reason}."
    concerns = tuple(
        f"{rating.category} was rated {rating.probability}"
        for rating in feedback.ratings
        if rating.probability.upper() not in LOW_SEVERITY_LEVELS
    )
    if concerns:
        message += f" Specific concerns: {', '.join(concerns)}."
    message += (
        " Please review your uploaded content for anything that might violate "
        "safety guidelines and try again."
    )
    categories = tuple(
        rating.category
        for rating in feedback.ratings
        if rating.probability.upper() not in LOW_SEVERITY_LEVELS
    )
    return UserFacingError(ErrorKind.SAFETY_BLOCKED, message, categories=categories)


def _check_text_present(response: GenerationResponse) -> Optional[UserFacingError]:
    if response.text:
        return None
    if response.candidate_count == 0:
        return UserFacingError(
            ErrorKind.EMPTY_RESPONSE,
            "The AI model did not return a valid response. There were no candidates "
            "generated, which could indicate a problem with the model or the request.",
        )
    reason = response.finish_reason.value if response.finish_reason else "UNKNOWN"
    return UserFacingError(
        ErrorKind.EMPTY_RESPONSE,
        "Received an empty text response from the AI model. The generation finished "
        f"with reason: {reason}. This could mean the content was filtered or the "
        "request resulted in no output.",
    )


def _excerpt(text: str) -> str:
    if len(text) > EXCERPT_LENGTH:
        return text[:EXCERPT_LENGTH] + "..."
    return text


def locate_json(text: str) -> Optional[str]:
    """
    Find the JSON candidate inside free-form model text.

    A fenced code block wins. Otherwise the span runs from the first opening
    bracket to the last closing bracket of the same family; when that closing
    bracket is missing (truncated output) the rest of the text is returned so
    the decoder can report where it broke.

    Returns:
        The candidate substring, or None when the text has no opening bracket.
    """
    match = FENCED_JSON_PATTERN.search(text)
    if match and match.group(1):
        return match.group(1)

    starts = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if not starts:
        return None

    start = min(starts)
    end = text.rfind(BRACKET_PAIRS[text[start]])
    if end < start:
        return text[start:]
    return text[start : end + 1]


def extract_json(text: str) -> Any:
    """
    Extract and parse the JSON document embedded in model text.

    Raises:
        JSONExtractionError: With kind MALFORMED_OUTPUT when nothing parses.
    """
    candidate = locate_json(text)
    if candidate is None:
        raise JSONExtractionError(
            "The AI model returned a text response that could not be parsed into the "
            "expected JSON format. This can happen if the request was blocked by safety "
            "filters or if the prompt was too ambiguous. Please review your input and "
            f'try again.\n\nModel\'s response:\n"{_excerpt(text)}"',
            ErrorKind.MALFORMED_OUTPUT,
        )

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.debug(f"Failed to parse JSON candidate ({len(candidate)} chars): {e}")
        # Trailing prose may contain a closing bracket; accept the leading document
        try:
            document, _ = json.JSONDecoder().raw_decode(candidate)
            return document
        except json.JSONDecodeError:
            pass
        raise JSONExtractionError(
            f"Failed to parse JSON string: {e}. The AI's response might be malformed "
            "or incomplete.",
            ErrorKind.MALFORMED_OUTPUT,
        ) from e


def interpret(response: GenerationResponse) -> Result[Any]:
    """Interpret a structured-generation response as a parsed JSON document."""
    blocked = check_safety(response)
    if blocked is not None:
        logger.warning(f"Response blocked by safety policy: {blocked.categories}")
        return Failure(blocked)

    missing = _check_text_present(response)
    if missing is not None:
        logger.warning(f"Empty response (finish_reason={response.finish_reason})")
        return Failure(missing)

    try:
        document = extract_json(response.text)
    except JSONExtractionError as e:
        if response.finish_reason is FinishReason.MAX_TOKENS:
            logger.warning("Structured response was truncated at the token limit")
            return fail(
                ErrorKind.TRUNCATED,
                "The AI's response was too long and was cut short before it could "
                "finish generating the complete JSON document. Please try again with "
                "a smaller input or excerpt.",
            )
        logger.warning(f"Could not extract JSON from response: {str(e)[:200]}")
        return fail(e.kind, str(e))

    return Success(document)


def interpret_text(response: GenerationResponse) -> Result[str]:
    """Interpret a free-text response (chat, analysis) without JSON extraction."""
    blocked = check_safety(response)
    if blocked is not None:
        return Failure(blocked)
    missing = _check_text_present(response)
    if missing is not None:
        return Failure(missing)
    return Success(response.text)
