class AIError(Exception):
    """Failure with a short code that is safe to show in an iMessage reply."""

    code = "AI_ERROR"

    def __init__(self, message, code=None):
        super().__init__(message)
        if code:
            self.code = code


class InitializationError(AIError):
    code = "INIT_FAILED"


class NotInitialized(AIError):
    code = "NOT_INITIALIZED"


class InputNotFound(AIError):
    code = "INPUT_NOT_FOUND"


class ResponseTimeout(AIError):
    code = "TIMEOUT"


class ResponseFailed(AIError):
    code = "RESPONSE_FAILED"


class TargetUnavailable(AIError):
    code = "TARGET_UNAVAILABLE"

    def __init__(self, ai, available=()):
        self.ai = ai
        self.available = list(available)
        super().__init__(
            f"{ai.upper()} is not configured. Available: {', '.join(self.available)}"
        )
