"""Error taxonomy for cloud-resources.

Every error raised by the reconciliation engine derives from
``CloudResourcesError``. Messages carry the resource name, namespace and tier
where they are known so a status message is meaningful on its own.
"""


class CloudResourcesError(Exception):
    """Base exception for cloud-resources.

    Attributes:
        context: Resource the error concerns, prefixed to the message
    """

    context: str = ""

    def with_context(self, context: str) -> "CloudResourcesError":
        """Attach the resource the error concerns, keeping the innermost one.

        Args:
            context: Description such as 'Postgres ns1/mydb (tier managed)'

        Returns:
            The same error
        """
        if not self.context:
            self.context = context
        return self

    def __str__(self) -> str:
        message = super().__str__()
        if self.context:
            return f"{self.context}: {message}"
        return message


class ConfigError(CloudResourcesError):
    """Strategy configuration could not be resolved."""


class ConfigReadError(ConfigError):
    """The strategy store could not be read or seeded."""


class ConfigDecodeError(ConfigError):
    """A strategy document is missing, malformed, or incomplete."""


class CredentialProvisioningError(CloudResourcesError):
    """The identity system rejected or failed to fulfil a credential request."""


class RemoteCallError(CloudResourcesError):
    """A call to a cloud API failed.

    Attributes:
        operation: Name of the remote operation that failed
        code: Vendor-specific error code, if one could be extracted
    """

    def __init__(self, message: str, operation: str = "", code: str = "") -> None:
        self.operation = operation
        self.code = code
        super().__init__(message)


class PollTimeoutError(CloudResourcesError):
    """A bounded wait for remote state convergence ran out of time.

    Attributes:
        description: What was being waited for
        timeout: Ceiling of the wait in seconds
    """

    def __init__(self, description: str, timeout: float) -> None:
        self.description = description
        self.timeout = timeout
        super().__init__(f"timed out after {timeout:g}s waiting for {description}")


class FinalizerUpdateError(CloudResourcesError):
    """The request's finalizer change could not be persisted."""


class ProviderNotFoundError(CloudResourcesError):
    """No registered provider supports the requested strategy."""


class ObjectNotFoundError(CloudResourcesError):
    """An object does not exist in the object store."""


class ObjectConflictError(CloudResourcesError):
    """An object already exists in the object store."""
