from dataclasses import dataclass
from datetime import timedelta
from typing import AbstractSet, Iterable, Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class Policy:
    """
    Decides which responses are worth persisting, and for how long.

    Both allow-sets are required and must be non-empty: there is no implicit
    "cache everything" or "cache nothing". Prefer `PolicyBuilder` over calling
    this constructor directly.
    """

    allowed_status_codes: AbstractSet[int]
    """
    Only responses with one of these status codes are persisted. E.g., {200}.
    """

    allowed_methods: AbstractSet[str]
    """
    Only responses to requests using one of these methods are persisted.
    Compared case-insensitively. E.g., {"GET"}.
    """

    ttl: Optional[timedelta] = None
    """
    How long a persisted response stays valid. `None` means forever.
    """

    include_request_body: bool = False
    """
    Whether the request body takes part in the request identity.
    """

    def __post_init__(self) -> None:
        status_codes = _require_non_empty('allowed_status_codes', self.allowed_status_codes)
        for status in status_codes:
            if isinstance(status, bool) or not isinstance(status, int):
                raise ConfigurationError('Status codes must be integers, got {!r}'.format(status))
        methods = _require_non_empty('allowed_methods', self.allowed_methods)
        for method in methods:
            if not isinstance(method, str) or not method:
                raise ConfigurationError('Methods must be non-empty strings, got {!r}'.format(method))
        if self.ttl is not None:
            if not isinstance(self.ttl, timedelta):
                raise ConfigurationError('ttl must be a timedelta, got {!r}'.format(self.ttl))
            if self.ttl < timedelta(0):
                raise ConfigurationError('ttl must not be negative, got {}'.format(self.ttl))

        # The dataclass is frozen, so normalise through object.__setattr__.
        object.__setattr__(self, 'allowed_status_codes', frozenset(status_codes))
        object.__setattr__(self, 'allowed_methods', frozenset(method.upper() for method in methods))

    def is_allowed_status_code(self, status: int) -> bool:
        return status in self.allowed_status_codes

    def is_allowed_method(self, method: str) -> bool:
        return method.upper() in self.allowed_methods

    def should_persist(self, status: int, method: str) -> bool:
        return self.is_allowed_status_code(status) and self.is_allowed_method(method)


def _require_non_empty(name: str, values) -> list:
    if values is None:
        raise ConfigurationError('{} is required'.format(name))
    if isinstance(values, (str, bytes)):
        raise ConfigurationError('{} must be a collection, not a single value'.format(name))
    try:
        values = list(values)
    except TypeError:
        raise ConfigurationError('{} must be a collection, got {!r}'.format(name, values)) from None
    if not values:
        raise ConfigurationError('{} must not be empty'.format(name))
    return values


class PolicyBuilder:
    """
    Accumulates policy settings and validates them once, in `build()`.

    The allowed status codes and allowed methods are required; everything else
    is optional.

        policy = (PolicyBuilder()
                  .with_allowed_status_codes([200])
                  .with_allowed_methods(['GET'])
                  .with_ttl(timedelta(hours=1))
                  .build())
    """

    def __init__(self) -> None:
        self.__allowed_status_codes = None
        self.__allowed_methods = None
        self.__ttl = None
        self.__include_request_body = False

    def with_allowed_status_codes(self, status_codes: Iterable[int]) -> 'PolicyBuilder':
        self.__allowed_status_codes = status_codes
        return self

    def with_allowed_methods(self, methods: Iterable[str]) -> 'PolicyBuilder':
        self.__allowed_methods = methods
        return self

    def with_ttl(self, ttl: Optional[timedelta]) -> 'PolicyBuilder':
        self.__ttl = ttl
        return self

    def with_request_body_in_key(self, include: bool = True) -> 'PolicyBuilder':
        self.__include_request_body = include
        return self

    def build(self) -> Policy:
        """
        @return
          An immutable policy.
        @throws ConfigurationError
          If a required setting is missing or any setting is invalid.
        """
        if self.__allowed_status_codes is None:
            raise ConfigurationError('A policy needs allowed status codes; call with_allowed_status_codes()')
        if self.__allowed_methods is None:
            raise ConfigurationError('A policy needs allowed methods; call with_allowed_methods()')
        return Policy(allowed_status_codes=self.__allowed_status_codes,
                      allowed_methods=self.__allowed_methods,
                      ttl=self.__ttl,
                      include_request_body=self.__include_request_body)
