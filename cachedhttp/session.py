"""
Convenience wrappers for sending requests through a `CachedHTTPAdapter`.

None of these make caching decisions; they only route requests to the adapter.
"""

import requests

from .adapter import CachedHTTPAdapter


class CachedSession(requests.Session):
    """
    A `requests.Session` whose HTTP and HTTPS traffic goes through `adapter`.
    """

    def __init__(self, adapter: CachedHTTPAdapter) -> None:
        super().__init__()
        self.mount('http://', adapter)
        self.mount('https://', adapter)
        self.cached_adapter = adapter

    def close(self) -> None:
        # The adapter outlives the session; whoever created it closes it.
        for adapter in self.adapters.values():
            if adapter is not self.cached_adapter:
                adapter.close()


def request(adapter: CachedHTTPAdapter, method: str, url: str, **kwargs) -> requests.Response:
    with CachedSession(adapter) as session:
        return session.request(method=method, url=url, **kwargs)


def get(adapter: CachedHTTPAdapter, url: str, params=None, **kwargs) -> requests.Response:
    return request(adapter, 'GET', url, params=params, **kwargs)


def head(adapter: CachedHTTPAdapter, url: str, **kwargs) -> requests.Response:
    kwargs.setdefault('allow_redirects', False)
    return request(adapter, 'HEAD', url, **kwargs)


def post(adapter: CachedHTTPAdapter, url: str, data=None, json=None, **kwargs) -> requests.Response:
    return request(adapter, 'POST', url, data=data, json=json, **kwargs)


def put(adapter: CachedHTTPAdapter, url: str, data=None, **kwargs) -> requests.Response:
    return request(adapter, 'PUT', url, data=data, **kwargs)


def patch(adapter: CachedHTTPAdapter, url: str, data=None, **kwargs) -> requests.Response:
    return request(adapter, 'PATCH', url, data=data, **kwargs)


def delete(adapter: CachedHTTPAdapter, url: str, **kwargs) -> requests.Response:
    return request(adapter, 'DELETE', url, **kwargs)
