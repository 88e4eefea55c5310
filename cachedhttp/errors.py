class CacheError(Exception):
    """
    Base class for every error raised by the caching layer itself.

    Errors raised by the underlying adapter (e.g., `requests.ConnectionError`)
    are never wrapped in one of these.
    """


class ConfigurationError(CacheError, ValueError):
    """
    A policy or adapter was built with missing or invalid parts.
    """


class StorageFailure(CacheError):
    """
    The store could not complete a save or a read.
    """


class OperationCancelled(StorageFailure):
    """
    A storage operation was aborted because its cancellation token fired.
    """
