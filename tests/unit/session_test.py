from datetime import timedelta
from ddt import ddt, data, unpack
from io import BytesIO
from mockito import mock, unstub, verify, when
from pathlib import Path
import requests
from requests.adapters import BaseAdapter
from tempfile import TemporaryDirectory
from unittest import TestCase

from cachedhttp import session
from cachedhttp.adapter import CachedHTTPAdapter
from cachedhttp.model import RequestIdentity
from cachedhttp.policy import PolicyBuilder
from cachedhttp.store import SqliteStore


def a_response(status: int, body: bytes) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.raw = BytesIO(body)
    return response


@ddt
class TestCachedSession(TestCase):
    def setUp(self):
        self.__directory = TemporaryDirectory()
        self.__store = SqliteStore(Path(self.__directory.name) / 'responses.sqlite')
        self.__inner = mock(BaseAdapter)
        policy = (PolicyBuilder()
                  .with_allowed_status_codes([200])
                  .with_allowed_methods(['GET', 'POST'])
                  .with_ttl(timedelta(hours=1))
                  .build())
        self.__adapter = CachedHTTPAdapter(self.__store, policy, self.__inner)

    def tearDown(self):
        unstub()
        self.__store.close()
        self.__directory.cleanup()

    def test_session_routes_through_adapter(self):
        when(self.__inner).send(...).thenReturn(a_response(200, b'hello'))

        with session.CachedSession(self.__adapter) as sut:
            first = sut.get('https://a.test/x')
            second = sut.get('https://a.test/x')

        self.assertEqual('hello', first.text)
        self.assertEqual('hello', second.text)
        verify(self.__inner, times=1).send(...)

    def test_closing_session_keeps_adapter_open(self):
        with session.CachedSession(self.__adapter) as sut:
            self.assertIs(self.__adapter, sut.get_adapter('http://a.test/x'))
            self.assertIs(self.__adapter, sut.get_adapter('https://a.test/x'))

        verify(self.__inner, times=0).close()
        # The store is still open.
        self.assertIsNone(self.__store.read(RequestIdentity(host='a.test', path='/x', query='', method='GET')))

    @data(
        (session.get, 'GET'),
        (session.head, 'HEAD'),
        (session.post, 'POST'),
        (session.put, 'PUT'),
        (session.patch, 'PATCH'),
        (session.delete, 'DELETE'),
    )
    @unpack
    def test_helpers_use_their_method(self, helper, method):
        sent = []

        def send(request, **kw):
            sent.append(request.method)
            return a_response(200, b'ok')

        when(self.__inner).send(...).thenAnswer(send)

        response = helper(self.__adapter, 'https://a.test/x')

        self.assertEqual(200, response.status_code)
        self.assertEqual([method], sent)

    def test_helper_params_reach_the_key(self):
        when(self.__inner).send(...).thenReturn(a_response(200, b'page one')).thenReturn(a_response(200, b'page two'))

        self.assertEqual(b'page one', session.get(self.__adapter, 'https://a.test/x', params={'page': 1}).content)
        self.assertEqual(b'page two', session.get(self.__adapter, 'https://a.test/x', params={'page': 2}).content)
        self.assertEqual(b'page one', session.get(self.__adapter, 'https://a.test/x', params={'page': 1}).content)
        verify(self.__inner, times=2).send(...)
