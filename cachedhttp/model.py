"""
Defines the values exchanged between the adapter and a store.

These types are as simple as possible so that store implementations do not need
to know anything about `requests`.
"""

from dataclasses import dataclass, field
import hashlib
from typing import Optional
from urllib.parse import urlsplit

import requests


@dataclass(frozen=True)
class RequestIdentity:
    """
    Identifies "the same request" for caching purposes.

    Two requests with equal identities share one cache entry. Headers never take
    part in the identity.
    """

    host: str
    """
    The lower-cased host, including the port when one was given explicitly.
    E.g., "api.example.com:8443".
    """

    path: str
    """
    The request path. Never empty; a bare host is treated as "/".
    """

    query: str
    """
    The raw query string without the leading "?". Empty if there is none.
    """

    method: str
    """
    The upper-cased HTTP method. E.g., "GET".
    """

    body_digest: Optional[str] = None
    """
    A SHA-256 hex digest of the request body, only present when the policy asks
    for request bodies to be part of the key.
    """

    @property
    def key(self) -> str:
        """
        The string under which the entry is persisted.
        """
        key = '{} {}{}'.format(self.method, self.host, self.path)
        if self.query:
            key += '?' + self.query
        if self.body_digest is not None:
            key += '#' + self.body_digest
        return key

    @classmethod
    def from_request(cls, request: requests.PreparedRequest,
                     include_body: bool = False) -> Optional['RequestIdentity']:
        """
        Derive the identity of an outgoing request.

        @param request
          The prepared request about to be sent.
        @param include_body
          Whether the request body should be digested into the identity.
        @return
          The identity, or `None` if the body must be included but is a stream
          that cannot be read without consuming it.
        """
        parts = urlsplit(request.url)
        host = parts.netloc.rpartition('@')[2].lower()

        body_digest = None
        if include_body:
            body = request.body
            if body is None:
                body = b''
            elif isinstance(body, str):
                body = body.encode('utf-8')
            elif not isinstance(body, bytes):
                return None
            body_digest = hashlib.sha256(body).hexdigest()

        return cls(host=host,
                   path=parts.path or '/',
                   query=parts.query,
                   method=(request.method or 'GET').upper(),
                   body_digest=body_digest)


@dataclass(frozen=True)
class StoredResponse:
    """
    A response as a store hands it back: nothing but a status and a body.
    """

    status: int
    """
    The status code of the response. E.g., 200 or 404.
    """

    body: bytes = field(repr=False)
    """
    The response payload, byte for byte as it was saved.
    """
