"""Exception hierarchy for hackmatch.

Every error raised inside the agent pipeline inherits from MatchmakingError.
Most of them never reach a caller: the agent runtime absorbs event handling
failures and the manager turns task failures into TaskResult values.
"""


class MatchmakingError(Exception):
    """Base exception for all hackmatch errors."""
    pass


class PayloadValidationError(MatchmakingError):
    """An event or task payload is malformed or missing required fields."""

    def __init__(self, message: str, missing_fields: list[str] | None = None):
        super().__init__(message)
        self.missing_fields = missing_fields or []


class InsufficientCandidatesError(MatchmakingError):
    """The candidate pool is smaller than the requested team size."""

    def __init__(self, needed: int, available: int):
        super().__init__(f"insufficient candidates: need {needed}, have {available}")
        self.needed = needed
        self.available = available

    @property
    def shortfall(self) -> int:
        return max(self.needed - self.available, 0)


class ProcessingError(MatchmakingError):
    """A worker failed internally while parsing, scoring or optimizing."""
    pass


class AgentDisabledError(MatchmakingError):
    """Work arrived for an agent that is disabled or stopped."""
    pass


class AgentNotFoundError(MatchmakingError):
    """No agent is registered under the requested id."""
    pass


class ConfigError(MatchmakingError):
    """Invalid configuration file or value."""
    pass


class UnknownRequesterError(MatchmakingError):
    """The requester of a team is not among the candidates."""

    def __init__(self, requester_id: str):
        super().__init__(f"requester not among candidates: {requester_id}")
        self.requester_id = requester_id
