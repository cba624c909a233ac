"""Custom exception classes for infragraph."""

from typing import List, Optional


class InfragraphError(Exception):
    """Base exception for all infragraph errors."""
    pass


class ConfigError(InfragraphError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(InfragraphError):
    """Raised when the desired state is invalid. Always raised before any mutation."""
    pass


class DeclarationLoadError(ValidationError):
    """Raised when a declaration file cannot be loaded or is invalid."""
    pass


class DanglingReference(ValidationError):
    """Raised when a reference or depends_on entry names an unknown resource."""

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target
        super().__init__(f"{source} references undeclared resource {target}")


class CyclicDependency(ValidationError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, chain: List[str]):
        self.chain = chain
        super().__init__(f"Dependency cycle detected: {' -> '.join(chain)}")


class PreventDestroyViolation(ValidationError):
    """Raised when a plan would destroy a resource flagged prevent_destroy."""

    def __init__(self, address: str, action: str):
        self.address = address
        self.action = action
        super().__init__(
            f"{address} has lifecycle.prevent_destroy set but the plan would {action} it"
        )


class UnresolvableOrder(InfragraphError):
    """Raised when execution steps cannot be ordered after lifecycle expansion."""

    def __init__(self, steps: List[str]):
        self.steps = steps
        super().__init__(f"Cannot order execution steps: {' -> '.join(steps)}")


class StateError(InfragraphError):
    """Raised when the state store cannot be loaded or persisted."""
    pass


class ProviderError(InfragraphError):
    """Base class for errors raised by a provider."""
    pass


class ProviderTransientError(ProviderError):
    """Throttling or transient network failure; safe to retry."""
    pass


class ProviderFatalError(ProviderError):
    """Bad parameter, permission denied, quota exceeded; never retried."""
    pass


class ResourceNotFound(ProviderError):
    """Raised by Provider.read when the remote object no longer exists."""
    pass


class ActionFailed(InfragraphError):
    """A single execution step failed for good."""

    def __init__(self, step_id: str, cause: Optional[Exception] = None, attempts: int = 1):
        self.step_id = step_id
        self.cause = cause
        self.attempts = attempts
        message = f"{step_id} failed after {attempts} attempt(s)"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class RunCancelled(InfragraphError):
    """Raised inside a step when the run has been cancelled."""
    pass
