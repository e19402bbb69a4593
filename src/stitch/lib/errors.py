"""Custom exception hierarchy for Stitch configuration and deployments."""


class StitchError(Exception):
    """Base exception for all Stitch errors.

    All Stitch-specific exceptions inherit from this class, enabling
    centralized exception handling at the CLI and HTTP boundaries.
    """

    pass


class ConfigError(StitchError):
    """Exception raised for configuration errors.

    Raised when configuration loading or parsing fails. Includes the
    offending field so the operator can find and fix the issue.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class NotFoundError(StitchError):
    """Exception raised when a service or deployment does not exist.

    Attributes:
        kind: Kind of entity that was looked up (e.g. "service", "deployment")
        identifier: The identifier that was not found
    """

    def __init__(self, kind: str, identifier: str) -> None:
        """Create a not-found error for an entity kind and identifier."""
        self.kind = kind
        self.identifier = identifier
        self.message = f"{kind.capitalize()} '{identifier}' not found"
        super().__init__(self.message)


class DeploymentError(StitchError):
    """Exception raised when a deployment operation fails.

    Covers provider API failures, pipeline failures and record
    persistence failures.

    Attributes:
        operation: The operation that failed (e.g. "launch", "describe")
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Create a deployment error for a failed operation."""
        self.operation = operation
        self.message = message
        super().__init__(f"Deployment {operation} failed: {message}")


class ProvisioningFailedError(DeploymentError):
    """Exception raised when the provider returns an unexpected instance set.

    A single-instance launch that yields zero or several instances is an
    invariant violation, not a retryable condition.
    """

    def __init__(self, message: str) -> None:
        """Create a provisioning error with a description of the result."""
        super().__init__(operation="launch", message=message)


class UnsupportedScriptKindError(StitchError):
    """Exception raised when a service declares a script kind we cannot run.

    Attributes:
        kind: The declared script kind
    """

    def __init__(self, kind: str | None) -> None:
        """Create an error for an unsupported script kind."""
        self.kind = kind
        self.message = (
            f"Unsupported script kind: {kind}"
            if kind
            else "Service defines no deployment script"
        )
        super().__init__(self.message)


class CloudSDKNotInstalledError(StitchError):
    """Exception raised when an optional cloud SDK is not importable.

    Attributes:
        provider: Cloud provider name
        sdk_name: Distribution name of the missing SDK
    """

    def __init__(self, provider: str, sdk_name: str) -> None:
        """Create an error pointing at the missing SDK package."""
        self.provider = provider
        self.sdk_name = sdk_name
        self.message = (
            f"The {provider} provisioner requires '{sdk_name}'.\n"
            f"Install it with: pip install {sdk_name}"
        )
        super().__init__(self.message)
