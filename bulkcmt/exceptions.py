"""Custom exceptions for bulkcmt."""


class BulkCommitError(Exception):
    """Base exception for bulkcmt."""


class GitError(BulkCommitError):
    """Exception raised for Git-related errors."""


class GitTimeoutError(GitError):
    """Raised when a single Git command exceeds the configured timeout."""


class RepositoryNotFoundError(GitError):
    """Raised when no Git repository is bound to an operation."""


class RepositoryBusyError(BulkCommitError):
    """Raised when another mutating operation already holds the repository."""


class ConfigError(BulkCommitError):
    """Exception raised for configuration errors."""


class ValidationError(BulkCommitError):
    """Exception raised for invalid requests or commit tasks."""
