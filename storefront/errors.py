"""Error taxonomy shared by the order store, issuer, settlement and API."""


class StorefrontError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    """Malformed or inconsistent input. The client must fix and resend."""

    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFound(StorefrontError):
    status_code = 404
    code = "not_found"


class InvalidState(StorefrontError):
    """Operation not valid for the order's current lifecycle state."""

    status_code = 409
    code = "invalid_state"


class ConflictError(StorefrontError):
    """A compare-and-swap found a different state than the one expected."""

    status_code = 409
    code = "conflict"

    def __init__(self, message: str, current_state=None):
        super().__init__(message)
        self.current_state = current_state


class GatewayUnavailable(StorefrontError):
    """Transient gateway failure. Nothing was committed; safe to retry."""

    status_code = 503
    code = "gateway_unavailable"


class GatewayError(StorefrontError):
    """The gateway rejected the request."""

    status_code = 502
    code = "gateway_error"


class UntrustedCallback(StorefrontError):
    status_code = 401
    code = "untrusted_callback"


class IntentMismatch(StorefrontError):
    status_code = 400
    code = "intent_mismatch"
