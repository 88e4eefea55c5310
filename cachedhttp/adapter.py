from io import BytesIO
import logging
from pathlib import Path
from typing import Optional, Union

import requests
from requests.adapters import BaseAdapter, HTTPAdapter
from requests.structures import CaseInsensitiveDict

from .cancellation import CancellationToken
from .errors import ConfigurationError, StorageFailure
from .model import RequestIdentity, StoredResponse
from .policy import Policy
from .store import SqliteStore, Store
from .util import drain_and_replace, reason_phrase


logger = logging.getLogger(__name__)


class CachedHTTPAdapter(BaseAdapter):
    """
    A transport adapter that answers from a store when it can, and otherwise
    sends the request through another adapter and stores what the policy allows.

    The adapter keeps no cache state of its own, so one instance can be shared
    by concurrent callers as long as its store can.
    """

    def __init__(self, store: Store, policy: Policy, adapter: Optional[BaseAdapter] = None) -> None:
        """
        @param store
          Where responses are persisted. Required.
        @param policy
          Which responses are persisted, and for how long. Required.
        @param adapter
          The adapter that performs the actual network call. Defaults to a new
          `requests.adapters.HTTPAdapter`.
        @throws ConfigurationError
          If the store or the policy is missing.
        """
        if store is None:
            raise ConfigurationError('A CachedHTTPAdapter needs a store')
        if not isinstance(store, Store):
            raise ConfigurationError('The store must be a Store, got {!r}'.format(store))
        if policy is None:
            raise ConfigurationError('A CachedHTTPAdapter needs a policy')
        if not isinstance(policy, Policy):
            raise ConfigurationError('The policy must be a Policy, got {!r}'.format(policy))

        super().__init__()
        self.store = store
        self.policy = policy
        self.adapter = adapter if adapter is not None else HTTPAdapter()

    def send(self, request: requests.PreparedRequest, stream: bool = False, timeout=None, verify=True, cert=None,
             proxies=None, cancellation: Optional[CancellationToken] = None) -> requests.Response:
        """
        Send a request, or answer it from the store.

        Steps:
        1. Look the request up in the store. A stored, unexpired response is
           returned without any network call.
        2. Otherwise send the unmodified request through the underlying adapter.
           Its errors propagate untouched and the store is left alone.
        3. If the policy allows the status code and method, read the body once,
           save it, and give the response a fresh body for the caller.

        @param cancellation
          Aborts pending store reads and writes. It does not interrupt a request
          already handed to the underlying adapter.
        @throws StorageFailure
          If the store could not be read, or the response could not be saved.
          In the latter case the fetched response is closed and not returned.
        """
        send_kw = dict(stream=stream, timeout=timeout, verify=verify, cert=cert, proxies=proxies)

        identity = RequestIdentity.from_request(request, include_body=self.policy.include_request_body)
        if identity is None:
            logger.warning('The request body for {} {} is a stream and cannot be keyed. Bypassing the cache.'
                           .format(request.method, request.url))
            return self.adapter.send(request, **send_kw)

        stored = self.store.read(identity, cancellation=cancellation)
        if stored is not None:
            logger.info('Cache hit for {}'.format(identity.key))
            return self.build_response(request, stored)

        logger.info('Cache miss for {}. Delegating to the underlying adapter.'.format(identity.key))
        response = self.adapter.send(request, **send_kw)

        if not self.policy.should_persist(response.status_code, identity.method):
            logger.info('Not caching {}. Status code {} with method {} is not cachable.'
                        .format(identity.key, response.status_code, identity.method))
            return response

        body = drain_and_replace(response)
        try:
            self.store.save(identity, body, response.status_code, ttl=self.policy.ttl, cancellation=cancellation)
        except StorageFailure:
            logger.warning('Could not save the response for {}. Discarding it.'.format(identity.key))
            response.close()
            raise

        return response

    def build_response(self, request: requests.PreparedRequest, stored: StoredResponse) -> requests.Response:
        result = requests.Response()
        result.status_code = stored.status
        result.reason = reason_phrase(stored.status)
        result.headers = CaseInsensitiveDict()
        result.raw = BytesIO(stored.body)
        result.url = request.url
        result.request = request
        result.connection = self
        return result

    def close(self) -> None:
        self.adapter.close()
        self.store.close()


def create(path: Union[str, Path], policy: Policy, adapter: Optional[BaseAdapter] = None) -> CachedHTTPAdapter:
    return CachedHTTPAdapter(SqliteStore(path), policy, adapter)
