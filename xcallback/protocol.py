"""Wire constants of the x-callback-url convention."""

from __future__ import annotations

XCU_PREFIX = "x-"
XCU_HOST = "x-callback-url"

# Friendly name of the calling app, shown to the user by the target if needed.
SOURCE_KEY = "x-source"
# URL opened by the target on successful completion, with results appended.
SUCCESS_KEY = "x-success"
# URL opened by the target on failure, with at least error-Code and errorMessage.
ERROR_KEY = "x-error"
ERROR_CODE_KEY = "error-Code"
ERROR_MESSAGE_KEY = "errorMessage"
# URL opened by the target when the user cancels the action.
CANCEL_KEY = "x-cancel"

REQUEST_ID_KEY = "x-requestID"
LEGACY_REQUEST_ID_KEY = "requestID"
RESPONSE_KEY = "response"
RESPONSE_TYPE_KEY = "responseType"

PROTOCOL_KEYS = frozenset({REQUEST_ID_KEY, LEGACY_REQUEST_ID_KEY, RESPONSE_KEY, RESPONSE_TYPE_KEY})

RESPONSE_SUCCESS = "success"
RESPONSE_ERROR = "error"
RESPONSE_CANCEL = "cancel"
RESPONSE_TYPES = (RESPONSE_SUCCESS, RESPONSE_ERROR, RESPONSE_CANCEL)

# Callback URL key for each response type.
CALLBACK_KEYS = {
    RESPONSE_SUCCESS: SUCCESS_KEY,
    RESPONSE_ERROR: ERROR_KEY,
    RESPONSE_CANCEL: CANCEL_KEY,
}


def is_reserved_key(key: str) -> bool:
    """Keys never shown to action handlers or success callbacks."""
    return key in PROTOCOL_KEYS or key.startswith(XCU_PREFIX)
