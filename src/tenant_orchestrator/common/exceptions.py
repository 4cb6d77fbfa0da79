"""Tenant orchestrator exception hierarchy."""


class OrchestratorError(Exception):
    """Base exception for all orchestrator errors."""

    def __init__(self, message: str = "", code: str = "ORCHESTRATOR_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidPlanError(OrchestratorError):
    """Raised when a plan tier is not in the catalog."""

    def __init__(self, message: str = "Invalid plan"):
        super().__init__(message, code="INVALID_PLAN")


class InvalidTenantNameError(OrchestratorError):
    """Raised when a tenant name yields an empty subdomain."""

    def __init__(self, message: str = "Invalid tenant name"):
        super().__init__(message, code="INVALID_NAME")


class DuplicateSubdomainError(OrchestratorError):
    """Raised when a live tenant already holds the subdomain."""

    def __init__(self, message: str = "Subdomain already exists"):
        super().__init__(message, code="DUPLICATE_SUBDOMAIN")


class DuplicateSubnetError(OrchestratorError):
    """Raised when a live tenant already holds the subnet."""

    def __init__(self, message: str = "Subnet already allocated"):
        super().__init__(message, code="DUPLICATE_SUBNET")


class TenantNotFoundError(OrchestratorError):
    """Raised when a tenant is absent or already deleted."""

    def __init__(self, message: str = "Tenant not found"):
        super().__init__(message, code="NOT_FOUND")


class InvalidTransitionError(OrchestratorError):
    """Raised when a lifecycle transition is not allowed from the current status."""

    def __init__(self, message: str = "Invalid status transition"):
        super().__init__(message, code="INVALID_TRANSITION")


class AddressSpaceExhaustedError(OrchestratorError):
    """Raised when no further tenant subnet can be derived."""

    def __init__(self, message: str = "Tenant address space exhausted"):
        super().__init__(message, code="ADDRESS_SPACE_EXHAUSTED")


class PersistenceError(OrchestratorError):
    """Raised when the metadata store fails before the commit point."""

    def __init__(self, message: str = "Tenant store unavailable"):
        super().__init__(message, code="PERSISTENCE_ERROR")


class ReadinessTimeoutError(OrchestratorError):
    """Raised when a container never passes its health check."""

    def __init__(self, attempts: int, message: str = ""):
        self.attempts = attempts
        super().__init__(
            message or f"Service not ready after {attempts} attempts",
            code="READINESS_TIMEOUT",
        )


class InfrastructureError(OrchestratorError):
    """Raised when a container runtime action fails."""

    def __init__(self, message: str = "Infrastructure action failed", code: str = "INFRASTRUCTURE_ERROR"):
        super().__init__(message, code=code)


class RuntimeDriverError(InfrastructureError):
    """Raised when a runtime command exits unsuccessfully."""

    def __init__(self, command: list[str] | tuple[str, ...], stderr: str = "", message: str = ""):
        self.command = list(command)
        self.stderr = stderr
        super().__init__(
            message or f"{' '.join(self.command)} failed: {stderr.strip() or 'no output'}"
        )
