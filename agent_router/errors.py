"""
Error taxonomy for task routing and execution.

Not-found and invalid-argument conditions are plain ValueError, as elsewhere
in the service layer.
"""


class RoutingError(Exception):
    """Base class for errors raised while routing a task to an executor."""


class NoSuitableAgentsError(RoutingError):
    """No assignment or capability scan produced an eligible agent or team."""

    def __init__(self, message: str = "No suitable agents found for this task"):
        super().__init__(message)


class EmptyTeamError(RoutingError):
    """A team was selected for dispatch but has no members."""

    def __init__(self, message: str = "Team has no members"):
        super().__init__(message)


class ExecutorError(Exception):
    """The executor collaborator failed to produce an output for a run."""
