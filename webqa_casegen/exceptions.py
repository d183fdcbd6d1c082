class CaseGenError(Exception):
    """Base error for test case generation."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InvalidSnapshotError(CaseGenError):
    """Raised when a page snapshot lacks a url or title."""


class SessionNotFoundError(CaseGenError):
    """Raised when a session id is unknown or has expired."""

    def __init__(self, session_id: str = ""):
        super().__init__("Invalid or expired session ID")
        self.session_id = session_id


class UnsupportedFormatError(CaseGenError):
    """Raised by strict format resolution; ``render`` falls back to JSON instead."""


class ExternalCollaboratorTimeout(CaseGenError):
    """Raised when the browser, HTTP fetch or LLM does not answer in time."""

    def __init__(self, collaborator: str, timeout: float):
        super().__init__(f"{collaborator} did not respond within {timeout:g}s")
        self.collaborator = collaborator
        self.timeout = timeout
