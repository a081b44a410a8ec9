import asyncio

import pytest
import requests
from requests.cookies import RequestsCookieJar

from svcrest.avails import CannotConnect
from svcrest.conduit import cookiesession
from svcrest.conduit.cookiesession import CookieSession, connection_type

CERT_USER = b'<user><prop name="roles" type="admin"/><prop name="connection" type="client_cert"/></user>'
PASSWORD_USER = b'<user><prop name="connection" type="password"/></user>'


class _Response:
    def __init__(self, content=b'', status=200):
        self.content = content
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status}")


class _Session:
    document = PASSWORD_USER
    calls = None

    def __init__(self):
        self.cookies = RequestsCookieJar()
        self.cert = None
        self.verify = True
        _Session.calls = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def get(self, url, **kwargs):
        _Session.calls.append(('GET', url, self.cert))
        return _Response(self.document)

    def post(self, url, **kwargs):
        _Session.calls.append(('POST', url, self.cert))
        self.cookies.set('JSESSIONID', 'abc123')
        return _Response()


@pytest.fixture
def session(monkeypatch):
    monkeypatch.setattr(cookiesession.requests, 'Session', _Session)
    return _Session


def test_connection_type():
    assert connection_type(CERT_USER) == 'client_cert'
    assert connection_type(PASSWORD_USER) == 'password'
    assert connection_type(b'<user/>') == ''


def test_client_cert_user_gets_cookie(session):
    session.document = CERT_USER
    pre_connect = CookieSession("https://sse.test/", cert=("cert.pem", "key.pem"))

    headers = asyncio.run(pre_connect())

    assert headers == {'Cookie': 'JSESSIONID=abc123'}
    assert [call[0] for call in session.calls] == ['GET', 'POST']
    assert session.calls[0][1] == "https://sse.test/sse_cfg/user"
    assert session.calls[1][2] == ("cert.pem", "key.pem")


def test_other_users_skip_post(session):
    session.document = PASSWORD_USER

    assert CookieSession("https://sse.test").establish() == {}
    assert [call[0] for call in session.calls] == ['GET']


def test_bad_document(session):
    session.document = b'<user'

    with pytest.raises(CannotConnect):
        CookieSession("https://sse.test").establish()


def test_http_failure(monkeypatch):
    class _Failing(_Session):
        def get(self, url, **kwargs):
            raise requests.ConnectionError("refused")

    monkeypatch.setattr(cookiesession.requests, 'Session', _Failing)

    with pytest.raises(CannotConnect) as info:
        CookieSession("https://sse.test").establish()
    assert isinstance(info.value.__cause__, requests.ConnectionError)


@pytest.mark.parametrize("http_base", ["https://sse.test", "https://sse.test/", "https://sse.test/some/prefix/"])
def test_session_url_replaces_path(http_base):
    assert CookieSession(http_base).url == "https://sse.test/sse_cfg/user"
