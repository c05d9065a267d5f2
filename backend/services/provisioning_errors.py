"""
Provisioning error taxonomy.

Every failure a create-service request can end in. Each carries the message
shown to the panel user; `detail` keeps the internal reason for logs.
"""


class ProvisioningFailure(Exception):
    """Base class for create-service failures reported back to the user"""

    message = "Failed to create service!"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.message)
        self.detail = detail


class InvalidConfigurationError(ProvisioningFailure):
    """Unknown service type or a method the type does not support"""

    message = "Invalid service configuration!"


class AlreadyProvisionedError(ProvisioningFailure):
    """The user already owns a relay"""

    message = "Service already created!"


class UserNotFoundError(ProvisioningFailure):
    """The account no longer exists"""

    message = "User has been deleted!"


class NoAvailablePortError(ProvisioningFailure):
    """Every port in the allocation range is taken"""

    message = "Failed to create service, no available port!"


class ProvisioningError(ProvisioningFailure):
    """The container runtime could not create or start the relay"""

    message = "Failed to create service!"


class PersistenceError(ProvisioningFailure):
    """The relay started but could not be recorded on the user"""

    message = "Failed to update user info!"
