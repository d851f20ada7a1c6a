"""Core exceptions for stackpilot operations."""


class StackPilotError(Exception):
    """Base exception for stackpilot operations."""


class ConfigurationError(StackPilotError):
    """Configuration or manifest validation failed."""


class CapacityValidationError(StackPilotError):
    """Requested capacity update is invalid."""


class ConvergenceTimeoutError(StackPilotError):
    """Stacks did not converge before the configured timeout."""


class HealthCheckError(StackPilotError):
    """A health probe reported an unrecoverable error."""


class DeclinedError(StackPilotError):
    """Operator declined to run the command."""


class UnknownModeError(StackPilotError):
    """No handler exists for the requested mode."""


class DeployerError(StackPilotError):
    """A per-stack deployer operation failed."""


class APITestError(DeployerError):
    """Acceptance test requests failed."""


class BackendError(StackPilotError):
    """Cloud backend call failed."""
