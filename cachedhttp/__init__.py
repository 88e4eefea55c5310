from .adapter import CachedHTTPAdapter, create
from .cancellation import CancellationToken
from .errors import CacheError, ConfigurationError, OperationCancelled, StorageFailure
from .model import RequestIdentity, StoredResponse
from .policy import Policy, PolicyBuilder
from .session import CachedSession
from .store import SqliteStore, Store
