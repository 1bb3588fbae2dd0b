"""Exceptions that escape the orchestration core.

Leaf failures (a single agent call) never surface as exceptions here; they are
folded into ActionResult / Contribution / FixResult values. What remains are
genuine misconfiguration and invariant violations.
"""


class CouncilError(Exception):
    """Base class for design council errors."""


class ConfigurationError(CouncilError):
    """Raised when the council cannot run at all, e.g. no agent for any required role."""


class FeedbackSessionClosed(CouncilError):
    """Raised when a resolved or failed feedback session is asked to do more work."""

    def __init__(self, session_id: str, status: str) -> None:
        self.session_id = session_id
        self.status = status
        super().__init__(f"Feedback session {session_id} is {status}; no further iterations accepted")
