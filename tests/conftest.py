import json

import pytest

from svcrest.avails import Transport, const
from svcrest.conduit.service import Service


class FakeTransport(Transport):
    """In memory transport port, events are raised by the test itself"""

    def __init__(self, urls=None, close_immediately=False):
        super().__init__()
        self.urls = urls
        self.sent = []
        self.started = False
        self.close_requested = False
        self.close_immediately = close_immediately

    def start(self):
        self.started = True

    def send(self, text):
        self.sent.append(json.loads(text))

    def close(self):
        self.close_requested = True
        if self.close_immediately:
            self.on_close()

    def inject(self, message):
        if not isinstance(message, (str, bytes)):
            message = json.dumps(message)
        self.on_message(message)


class Hooks:
    def __init__(self):
        self.opened = 0
        self.closed = 0
        self.errors = []

    def on_open(self):
        self.opened += 1

    def on_close(self):
        self.closed += 1

    def on_error(self, error):
        self.errors.append(error)


@pytest.fixture
def hooks():
    return Hooks()


@pytest.fixture
def transports():
    return []


@pytest.fixture
def make_service(hooks, transports):

    def _make(impl=None, close_immediately=False, **kwargs):

        def factory(urls):
            transport = FakeTransport(urls, close_immediately)
            transports.append(transport)
            return transport

        kwargs.setdefault('transport_factory', factory)
        return Service(
            "ws://sse.test", "svc/Rest", impl,
            on_open=hooks.on_open,
            on_close=hooks.on_close,
            on_error=hooks.on_error,
            **kwargs,
        )

    return _make


@pytest.fixture
def restore_constants():
    saved = {name: getattr(const, name) for name in dir(const) if name.isupper() or name == 'debug'}
    yield
    for name, value in saved.items():
        setattr(const, name, value)
