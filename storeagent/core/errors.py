"""
Application errors for clean API error handling.

Use ServiceUnavailableError when a dependency (document store, LLM) is
misconfigured or unreachable so the API can return 503 with a user-facing message.
Per-step errors (StoreFailure, CapabilityError) are caught by the orchestrator and
recorded on the step; PlannerFailure and SynthesisFailure abort the turn.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. document store, LLM) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class StoreFailure(Exception):
    """Generic document store fault. The original driver error is chained."""

    def __init__(self, operation: str, collection: str = "") -> None:
        self.operation = operation
        self.collection = collection
        target = f" on {collection}" if collection else ""
        super().__init__(f"Store operation {operation}{target} failed")


class CapabilityError(Exception):
    """Invalid arguments or an executor-level fault for one capability call."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        self.message = message
        super().__init__(f"{name}: {message}")


class TurnValidationError(ValueError):
    """Missing or empty required turn input."""


class PlannerFailure(Exception):
    """The reasoning engine could not produce a plan."""


class SynthesisFailure(Exception):
    """The reasoning engine could not compose the final message."""


class TurnFailedError(Exception):
    """A turn was aborted. message is safe to show to the user."""

    def __init__(self, message: str = "Sorry, something went wrong while processing your request.") -> None:
        self.message = message
        super().__init__(message)
