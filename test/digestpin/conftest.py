import json

import pytest
import requests


def mk_response(
    status_code: int=200,
    body=None,
    reason: str=None,
) -> requests.Response:
    res = requests.Response()
    res.status_code = status_code
    res.reason = reason or ('OK' if status_code < 400 else 'Error')
    res.encoding = 'utf-8'

    if body is None:
        res._content = b''
    elif isinstance(body, bytes):
        res._content = body
    else:
        res._content = json.dumps(body).encode('utf-8')

    return res


class FakeSession:
    '''
    stands in for requests.Session; passes each request to `handler` (which must return a
    response, or raise) and records it
    '''
    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def request(self, method, url, headers=None, **kwargs):
        rq = {
            'method': method,
            'url': url,
            'headers': headers or {},
            **kwargs,
        }
        self.requests.append(rq)
        return self.handler(rq)

    def requests_to(self, path_fragment: str) -> list[dict]:
        return [rq for rq in self.requests if path_fragment in rq['url']]


@pytest.fixture
def fake_session():
    def _fake_session(handler):
        return FakeSession(handler=handler)
    return _fake_session


@pytest.fixture
def response():
    return mk_response
