"""Map low-level failures onto the user-facing ``ErrorKind`` taxonomy.

Structured information from the service (``google.genai.errors.APIError``
codes and statuses) is consulted first. The message-signature rules below are
kept as a compatibility path for errors that reach us as plain exceptions,
for example from proxies or from the HTTP download of generated media.
"""

from typing import Optional

from google.genai import errors as genai_errors

from .errors import ErrorKind, GenerationError, UserFacingError

RATE_LIMIT_SIGNATURES = (
    "429",
    "resource_exhausted",
    "quota",
    "rate limit",
    "too many requests",
)

INVALID_KEY_SIGNATURE = "api key not valid"
NOT_FOUND_SIGNATURE = "requested entity was not found"

# Message prefixes of errors produced by the response interpreter. An error
# that arrives as a plain exception with one of these prefixes has already
# been explained to the user and is passed through with its text unchanged.
INTERPRETER_MESSAGE_PREFIXES = (
    ("The request was blocked", ErrorKind.SAFETY_BLOCKED),
    ("The AI model did not return a valid response", ErrorKind.EMPTY_RESPONSE),
    ("Received an empty text response", ErrorKind.EMPTY_RESPONSE),
    ("The AI's response was too long", ErrorKind.TRUNCATED),
    ("The AI model returned a text response that could not be parsed", ErrorKind.MALFORMED_OUTPUT),
    ("Failed to parse JSON string", ErrorKind.MALFORMED_OUTPUT),
)

RATE_LIMIT_MESSAGE = (
    "You exceeded your API quota during {context}. "
    "Please check your plan and billing details and try again later."
)
INVALID_KEY_MESSAGE = (
    "Your API key is not valid ({context}). Please select a valid key to continue."
)
NOT_FOUND_MESSAGE = (
    "API key is invalid or not found ({context}). This is common for asynchronous "
    "media generation such as video; please select a valid key."
)


def _api_error_code(error: BaseException) -> Optional[int]:
    if isinstance(error, genai_errors.APIError):
        return getattr(error, "code", None)
    return None


def _api_error_status(error: BaseException) -> str:
    if isinstance(error, genai_errors.APIError):
        return str(getattr(error, "status", None) or "").upper()
    return ""


def is_rate_limit_error(error: BaseException) -> bool:
    """Return True when the failure is a quota or rate-limit rejection."""
    if isinstance(error, GenerationError):
        return error.kind is ErrorKind.RATE_LIMITED
    if _api_error_code(error) == 429 or _api_error_status(error) == "RESOURCE_EXHAUSTED":
        return True
    error_str = str(error).lower()
    return any(signature in error_str for signature in RATE_LIMIT_SIGNATURES)


def _classify_structured(error: BaseException, context: str) -> Optional[UserFacingError]:
    code = _api_error_code(error)
    if code is None:
        return None
    status = _api_error_status(error)
    details = str(getattr(error, "details", "") or "").upper()

    if code == 429 or status == "RESOURCE_EXHAUSTED":
        return UserFacingError(
            ErrorKind.RATE_LIMITED, RATE_LIMIT_MESSAGE.format(context=context), context, cause=error
        )
    if code == 400 and "API_KEY_INVALID" in details:
        return UserFacingError(
            ErrorKind.INVALID_CREDENTIAL,
            INVALID_KEY_MESSAGE.format(context=context),
            context,
            cause=error,
        )
    if code in (401, 403) or status in ("UNAUTHENTICATED", "PERMISSION_DENIED"):
        return UserFacingError(
            ErrorKind.INVALID_CREDENTIAL,
            INVALID_KEY_MESSAGE.format(context=context),
            context,
            cause=error,
        )
    if code == 404 or status == "NOT_FOUND":
        return UserFacingError(
            ErrorKind.INVALID_CREDENTIAL,
            NOT_FOUND_MESSAGE.format(context=context),
            context,
            cause=error,
        )
    return None


def classify(error: BaseException, context: str) -> UserFacingError:
    """
    Classify a raw failure for display.

    Args:
        error: The exception raised by the service call (or by our own checks)
        context: Label of the operation, e.g. "Video Generation (Polling)"

    Returns:
        A UserFacingError whose message can be shown verbatim
    """
    if isinstance(error, GenerationError):
        return error.error

    structured = _classify_structured(error, context)
    if structured is not None:
        return structured

    error_str = str(error).lower()

    if any(signature in error_str for signature in RATE_LIMIT_SIGNATURES):
        return UserFacingError(
            ErrorKind.RATE_LIMITED, RATE_LIMIT_MESSAGE.format(context=context), context, cause=error
        )
    if INVALID_KEY_SIGNATURE in error_str:
        return UserFacingError(
            ErrorKind.INVALID_CREDENTIAL,
            INVALID_KEY_MESSAGE.format(context=context),
            context,
            cause=error,
        )
    if NOT_FOUND_SIGNATURE in error_str:
        return UserFacingError(
            ErrorKind.INVALID_CREDENTIAL,
            NOT_FOUND_MESSAGE.format(context=context),
            context,
            cause=error,
        )

    message = str(error)
    for prefix, kind in INTERPRETER_MESSAGE_PREFIXES:
        if message.startswith(prefix):
            return UserFacingError(kind, message, context, cause=error)

    if message:
        text = f"An error occurred during {context}: {message}"
    else:
        text = f"An unexpected error occurred during {context}. Please try again."
    return UserFacingError(ErrorKind.UNKNOWN, text, context, cause=error)
