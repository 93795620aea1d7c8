"""Error taxonomy for payment settlement and distribution.

Startup errors (``ConfigurationError`` and its subclasses) propagate and stop
the process. Every other error is scoped to one settlement attempt and is
caught at the orchestrator boundary.
"""


class SettlementError(Exception):
    """Base class for all settlement errors."""


class ConfigurationError(SettlementError, ValueError):
    """Malformed or missing startup configuration."""


class InvalidPolicy(ConfigurationError):
    """Distribution weights are negative or do not sum to one."""


class SessionInitFailed(SettlementError):
    """The custody account session could not be initialized."""


class NoSigningIdentity(SessionInitFailed):
    """The custody service has no signing identities available."""


class InvalidAmount(SettlementError, ValueError):
    """Paid amount is non-positive or not finite."""


class InvalidBatch(SettlementError, ValueError):
    """Batch is empty or carries native value on a token-only leg."""


class SubmissionError(SettlementError):
    """Transport failure while submitting or polling an operation."""


class OperationFailed(SettlementError):
    """Operation reached a non-success terminal state or timed out.

    Attributes:
        status: Terminal status reported for the operation, or ``"timeout"``.
        operation_id: Identifier of the submitted operation, if known.
    """

    def __init__(self, status: str, operation_id: str = ""):
        self.status = status
        self.operation_id = operation_id
        message = f"User operation failed with status: {status}"
        if operation_id:
            message += f" ({operation_id})"
        super().__init__(message)
