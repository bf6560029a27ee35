from bulkcmt.exceptions import (
    BulkCommitError,
    ConfigError,
    GitError,
    GitTimeoutError,
    RepositoryBusyError,
    RepositoryNotFoundError,
    ValidationError,
)


def test_exceptions_hierarchy_and_str():
    assert isinstance(GitError("git"), BulkCommitError)
    assert isinstance(GitTimeoutError("slow"), GitError)
    assert isinstance(RepositoryNotFoundError("none"), GitError)
    assert isinstance(RepositoryBusyError("busy"), BulkCommitError)
    assert not isinstance(RepositoryBusyError("busy"), GitError)
    assert isinstance(ConfigError("cfg"), BulkCommitError)
    assert isinstance(ValidationError("val"), BulkCommitError)
    assert "cfg" in str(ConfigError("cfg"))
