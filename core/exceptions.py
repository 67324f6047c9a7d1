# =============================================================================
# core/exceptions.py - Provisioning error types
# =============================================================================

from typing import Iterable, Optional


class ProvisioningError(Exception):
    """Base class for contact provisioning errors"""


class ConfigurationError(ProvisioningError):
    """Required run configuration is missing or invalid"""


class CapabilityUnavailable(ProvisioningError):
    """The directory does not offer the operations a run needs"""

    def __init__(self, missing: Iterable[str], reason: Optional[str] = None):
        self.missing = list(missing)
        self.reason = reason
        message = f"Directory operations unavailable: {', '.join(self.missing)}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InputUnreadable(ProvisioningError):
    """The input file cannot be read or lacks the required columns"""

    def __init__(self, message: str, missing_columns: Iterable[str] = ()):
        self.missing_columns = list(missing_columns)
        super().__init__(message)


class DirectoryOperationError(ProvisioningError):
    """A directory call failed for a single contact"""

    operation = "directory"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CreateFailed(DirectoryOperationError):
    operation = "create_contact"


class UpdateFailed(DirectoryOperationError):
    operation = "update_contact"
