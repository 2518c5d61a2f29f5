"""
Custom application exceptions.
"""

class FileVaultException(Exception):
    """Base exception for the file vault."""
    pass


class AssetStoreCapabilityError(FileVaultException):
    """Raised when the configured asset store cannot normalise file paths."""
    pass


class FileValidationError(FileVaultException):
    """Raised when a file record fails validation on write."""
    pass


class FileRecordNotFoundError(FileVaultException):
    """Raised when a file record is not found."""
    pass


class InvalidStoragePathError(FileVaultException):
    """Raised when a filename would resolve outside the asset root."""
    pass
