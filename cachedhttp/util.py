from http import HTTPStatus
from io import BytesIO

import requests


def drain_and_replace(response: requests.Response) -> bytes:
    """
    Read the whole body of `response` and give it a fresh, replayable one.

    Afterwards `response.content`, `response.iter_content()` and `response.raw`
    all still yield the complete body.

    @return
      The body bytes.
    """
    original = response.raw
    body = response.content
    if body is None:
        # A response without a body stream has no content at all.
        body = response._content = b''

    # The original stream is exhausted, so hand its connection back to the pool.
    release_conn = getattr(original, 'release_conn', None)
    if release_conn is not None:
        release_conn()

    response.raw = BytesIO(body)
    return body


def reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ''
