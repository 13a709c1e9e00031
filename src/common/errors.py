# tradeguard/src/common/errors.py
"""
Error kinds raised by the risk and dispute engine.

Every rejected operation carries a machine-readable ``code`` so callers can
tell "already resolved" apart from "not your dispute" or "retry later".
"""


class EngineError(Exception):
    code = "engine_error"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, "retryable": self.retryable}


class NotFound(EngineError):
    code = "not_found"


class DuplicateDispute(EngineError):
    code = "duplicate_dispute"


class InvalidTransition(EngineError):
    code = "invalid_transition"


class InvalidState(InvalidTransition):
    """The operation itself is not allowed while the entity is in its current state."""
    code = "invalid_state"


class Unauthorized(EngineError):
    code = "unauthorized"


class InvalidRule(EngineError):
    code = "invalid_rule"


class ConcurrencyConflict(EngineError):
    code = "concurrency_conflict"
    retryable = True
