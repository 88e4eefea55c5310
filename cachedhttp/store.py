from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import timedelta
import logging
from pathlib import Path
import sqlite3
import threading
import time
from typing import Callable, Iterator, Optional, Union

from .cancellation import CancellationToken
from .errors import OperationCancelled, StorageFailure
from .model import RequestIdentity, StoredResponse


logger = logging.getLogger(__name__)


class Store(ABC):
    """
    An abstraction of a response store.

    A store has a narrow scope: remember a response body and status under a request identity so that it can be
    recalled later. It performs no HTTP reasoning of its own; deciding what is worth storing is the job of the
    `Policy`. Entries are never actively evicted. An entry whose expiry has passed is simply no longer returned.
    """

    @abstractmethod
    def save(self, identity: RequestIdentity, body: bytes, status: int, ttl: Optional[timedelta] = None,
             cancellation: Optional[CancellationToken] = None) -> None:
        """
        Save a response, replacing any entry already stored under `identity`.

        The write must be atomic: a concurrent `read()` sees either the old entry or the new one, never a mix.

        @param identity
          The identity of the request that produced the response.
        @param body
          The complete response body.
        @param status
          The response status code.
        @param ttl
          How long the entry stays valid, counted from now. `None` means it never expires.
        @param cancellation
          An optional token. If it fires, the write is abandoned and `OperationCancelled` is raised.
        @throws StorageFailure
          If the entry could not be written.
        """

    @abstractmethod
    def read(self, identity: RequestIdentity,
             cancellation: Optional[CancellationToken] = None) -> Optional[StoredResponse]:
        """
        Retrieve the response stored for `identity`.

        @param identity
          The identity of the request to look up.
        @param cancellation
          An optional token. If it fires, the read is abandoned and `OperationCancelled` is raised.
        @return
          The stored response, or `None` if there is none or it has expired. Expiry is never reported as an error.
        @throws StorageFailure
          If the store could not be read.
        """

    def close(self) -> None:
        """
        Close any resources associated with the store.
        """


class SqliteStore(Store):
    """
    Stores responses in a single SQLite table, one row per request identity.

    One connection is opened at construction time and reused for every call. Access to it is serialised with a lock,
    so a single instance may be shared between threads.
    """

    create_table_query = ('CREATE TABLE IF NOT EXISTS responses ('
                          'request_identity TEXT PRIMARY KEY, '
                          'request_method TEXT NOT NULL, '
                          'response_body BLOB NOT NULL, '
                          'status_code INTEGER NOT NULL, '
                          'expiry_time INTEGER)')
    save_query = ('INSERT OR REPLACE INTO responses '
                  '(request_identity, request_method, response_body, status_code, expiry_time) '
                  'VALUES (?, ?, ?, ?, ?)')
    read_query = 'SELECT response_body, status_code, expiry_time FROM responses WHERE request_identity = ?'

    # Number of SQLite virtual machine instructions between cancellation checks.
    progress_interval = 100

    def __init__(self, path: Union[str, Path], clock: Callable[[], float] = time.time, timeout: float = 5.0) -> None:
        """
        Open (creating if needed) the database file and make sure the table exists.

        @param path
          Path to the database file. Missing parent directories are created.
        @param clock
          Returns the current time in epoch seconds. Used to compute and check expiry.
        @param timeout
          Seconds to wait for a lock held by another connection before failing.
        @throws StorageFailure
          If the file or the table could not be created.
        """
        self.__path = Path(path)
        self.__clock = clock
        self.__lock = threading.Lock()

        try:
            self.__path.parent.mkdir(parents=True, exist_ok=True)
            logger.info('Opening response store at {}'.format(self.__path))
            # Transactions are managed explicitly, hence isolation_level=None.
            self.__connection = sqlite3.connect(str(self.__path), timeout=timeout,
                                                isolation_level=None, check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            raise StorageFailure('Could not open response store at {}'.format(self.__path)) from e

        try:
            self.__connection.execute(self.create_table_query)
        except sqlite3.Error as e:
            self.__connection.close()
            self.__connection = None
            raise StorageFailure('Could not create the responses table in {}'.format(self.__path)) from e

    @property
    def path(self) -> Path:
        return self.__path

    def save(self, identity: RequestIdentity, body: bytes, status: int, ttl: Optional[timedelta] = None,
             cancellation: Optional[CancellationToken] = None) -> None:
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        expiry = None
        if ttl is not None:
            # Truncated to whole seconds, so an entry never outlives now + ttl.
            expiry = int(self.__clock() + ttl.total_seconds())

        with self.__lock, self._connection(cancellation) as connection:
            try:
                connection.execute('BEGIN IMMEDIATE')
                connection.execute(self.save_query, (identity.key, identity.method, bytes(body), status, expiry))
                connection.execute('COMMIT')
            except BaseException:
                if connection.in_transaction:
                    logger.warning('Rolling back the save of {}'.format(identity.key))
                    # The rollback itself must not be interrupted.
                    connection.set_progress_handler(None, 0)
                    connection.execute('ROLLBACK')
                raise
        logger.info('Saved {} byte(s) with status {} for {}'.format(len(body), status, identity.key))

    def read(self, identity: RequestIdentity,
             cancellation: Optional[CancellationToken] = None) -> Optional[StoredResponse]:
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        with self.__lock, self._connection(cancellation) as connection:
            row = connection.execute(self.read_query, (identity.key,)).fetchone()

        if row is None:
            logger.info('No stored response for {}'.format(identity.key))
            return None

        body, status, expiry = row
        if expiry is not None and self.__clock() >= expiry:
            # The row is left in place. It is replaced by the next save under the same identity.
            logger.info('Stored response for {} expired at {}'.format(identity.key, expiry))
            return None

        return StoredResponse(status=status, body=bytes(body))

    def close(self) -> None:
        with self.__lock:
            if self.__connection is None:
                return
            logger.info('Closing response store at {}'.format(self.__path))
            try:
                self.__connection.close()
            except sqlite3.Error as e:
                raise StorageFailure('Could not close response store at {}'.format(self.__path)) from e
            finally:
                self.__connection = None

    @contextmanager
    def _connection(self, cancellation: Optional[CancellationToken]) -> Iterator[sqlite3.Connection]:
        """
        Yield the open connection, translating SQLite errors into `StorageFailure`.

        The caller must hold the lock. While a cancellation token is given, SQLite periodically asks it whether to
        interrupt the statement being run.
        """
        connection = self.__connection
        if connection is None:
            raise StorageFailure('The response store at {} is closed'.format(self.__path))

        if cancellation is not None:
            connection.set_progress_handler(lambda: int(cancellation.cancelled), self.progress_interval)
        try:
            yield connection
        except sqlite3.Error as e:
            if cancellation is not None and cancellation.cancelled:
                raise OperationCancelled('Storage operation on {} was cancelled'.format(self.__path)) from e
            raise StorageFailure('Storage operation on {} failed: {}'.format(self.__path, e)) from e
        finally:
            if cancellation is not None:
                connection.set_progress_handler(None, 0)
