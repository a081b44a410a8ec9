"""Client side of svc_rest websocket services

Usage::

    def add(request, reply):
        reply({'reply': 'Ok', 'sum': request['lhs'] + request['rhs']})

    async with Service('wss://some.sse', 'path/to/RestService', {'path/to/add': add},
                       on_error=print) as service:
        service.notify('path/to/Hello', {'who': 'me'})
        service.solicit('path/to/Ping', {}, lambda response: print(response))
        response = await service.asolicit('path/to/Ping')

The websocket events are very simple, this module only supplies the callback
idiom for solicit/response and request[consume]/reply on top of them.

"""

import asyncio
import enum
from typing import Callable, Mapping, Optional

from svcrest.avails import (
    InvalidStateError,
    ServiceError,
    Transport,
    TransportConstructionFailure,
    TransportRuntimeError,
    const,
    use,
)
from svcrest.conduit import logger
from svcrest.conduit.cookiesession import CookieSession
from svcrest.conduit.dispatch import MessageDispatcher
from svcrest.conduit.transport import WebSocketTransport
from svcrest.configurations import configure

_UNSET = object()


def _noop(*_):
    pass


class ServiceState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def websocket_transport(urls: configure.ServiceUrls) -> WebSocketTransport:
    """Default transport factory, built from the configured constants"""
    pre_connect = None
    if const.AUTO_COOKIE_SESSION:
        pre_connect = CookieSession(
            urls.http_base,
            cert=configure.client_cert(),
            verify=const.TLS_CAFILE or True,
            timeout=const.HTTP_TIMEOUT,
        )

    return WebSocketTransport(
        urls.ws_url,
        ssl_context=configure.make_ssl_context(),
        pre_connect=pre_connect,
        buffer_size=const.MAX_SEND_BUFFER_LEN,
        open_timeout=const.OPEN_TIMEOUT,
        ping_interval=const.PING_INTERVAL,
        close_timeout=const.CLOSE_TIMEOUT,
    )


class Service:
    """One svc_rest websocket, multiplexing notify, solicit/response and request[consume]/reply

    Hooks are single slot, assign them directly or pass them in the constructor,
    every failure ends up in :attr:`on_error` as a :class:`ServiceError`, none of them closes the channel

    Args:
        base(str): ws[s]:// or http[s]:// base of the service
        href(str): path of the rest service
        impl(Mapping[str, Callable]): implementations of remote callable paths, called as ``impl[path](message, reply)``
        transport_factory(Callable[[ServiceUrls], Transport]): builds the transport port
        solicit_timeout(float | None): default expiry of pending solicits, None waits indefinitely
        autostart(bool): open the channel right away, needs a running event loop

    Attributes:
        on_open (Callable[[], None]): called when the channel opens
        on_close (Callable[[], None]): called once, when the channel is gone
        on_error (Callable[[ServiceError], None]): called for each failure
        state (ServiceState): CONNECTING -> OPEN -> CLOSED

    Raises:
        UnsupportedBase: if base is neither ws[s] nor http[s]
    """

    def __init__(self, base, href, impl: Optional[Mapping[str, Callable]] = None, *,
                 on_open=None, on_close=None, on_error=None,
                 transport_factory: Callable[[configure.ServiceUrls], Transport] = websocket_transport,
                 solicit_timeout=_UNSET, autostart=True):
        self.urls = configure.build_urls(base, href)
        self.state = ServiceState.CONNECTING
        self.transport: Optional[Transport] = None
        self.transport_factory = transport_factory
        self.solicit_timeout = const.SOLICIT_TIMEOUT if solicit_timeout is _UNSET else solicit_timeout
        self.dispatcher = MessageDispatcher(impl, send=self._send, report=self._report)

        self.on_open = on_open or _noop
        self.on_close = on_close or _noop
        self.on_error = on_error or _noop

        self._opened_event = asyncio.Event()
        self._closed_event = asyncio.Event()

        if autostart:
            self.open()

    @property
    def ws_url(self):
        return self.urls.ws_url

    @property
    def impl(self):
        return self.dispatcher.registry

    @property
    def pending(self):
        """Number of solicits still waiting for their response"""
        return self.dispatcher.pending

    @property
    def is_open(self):
        return self.state is ServiceState.OPEN

    def open(self):
        """Builds and starts the transport

        A transport that can't even be constructed (malformed address for example)
        is reported to :attr:`on_error` on the next loop iteration,
        so hooks attached right after construction still observe it
        """
        if self.state is ServiceState.CLOSED:
            raise InvalidStateError("service is closed, create a new one")
        if self.transport is not None:
            raise InvalidStateError("service already opened")

        try:
            transport = self.transport_factory(self.urls)
        except Exception as exp:
            logger.error(f"[SERVICE] invalid websocket {self.ws_url}", exc_info=exp)
            error = TransportConstructionFailure(f"Invalid websocket {self.ws_url}", path=self.ws_url)
            error.__cause__ = exp
            asyncio.get_running_loop().call_soon(self._report, error)
            return

        transport.on_open = self._transport_opened
        transport.on_close = self._transport_closed
        transport.on_error = self._transport_errored
        transport.on_message = self._transport_message
        self.transport = transport

        logger.info(f"[SERVICE] opening {self.ws_url}")
        transport.start()

    def close(self):
        """Closes the transport which in turn causes the :attr:`on_close` callback

        If there is no transport (e.g. the url was invalid anyway)
        then :attr:`on_close` is invoked directly
        """
        if self.transport is not None:
            self.transport.close()
            return

        if self.state is not ServiceState.CLOSED:
            self._closed()

    async def wait_open(self):
        """Waits until the channel opens

        Returns:
            bool: False if the channel closed instead
        """
        waiters = {
            asyncio.ensure_future(self._opened_event.wait()),
            asyncio.ensure_future(self._closed_event.wait()),
        }
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
        return self.state is ServiceState.OPEN

    async def wait_closed(self):
        await self._closed_event.wait()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
        await self.wait_closed()

    # outbound

    def notify(self, path, payload: Optional[Mapping] = None):
        """Dispatches a notify event, nothing comes back"""
        self.dispatcher.notify(path, payload)

    def solicit(self, path, payload: Optional[Mapping], continuation: Callable, *, timeout=_UNSET):
        """Dispatches a solicit event and invokes ``continuation`` on arrival of the response

        Returns:
            str: correlation id of the solicit
        """
        return self.dispatcher.solicit(path, payload, continuation, timeout=self._timeout(timeout))

    async def asolicit(self, path, payload: Optional[Mapping] = None, *, timeout=_UNSET):
        """Awaitable form of :meth:`solicit`

        Returns:
            ServiceMessage: the response, cleaned of id and reduced to its leaf name

        Raises:
            SolicitTimeout: if the response didn't arrive in time
            TransportRuntimeError: if the channel closed before the response arrived
        """
        fut = asyncio.get_running_loop().create_future()

        def _arrived(message):
            if not fut.done():
                fut.set_result(message)

        def _failed(error):
            if not fut.done():
                fut.set_exception(error)

        def _abandoned():
            _failed(TransportRuntimeError(f"channel closed before response to {path}", path=path))

        msg_id = self.dispatcher.solicit(
            path, payload, _arrived,
            timeout=self._timeout(timeout),
            on_expire=_failed,
            on_abandon=_abandoned,
        )

        try:
            return await fut
        except asyncio.CancelledError:
            self.dispatcher.correlations.resolve(msg_id)
            raise

    def _timeout(self, timeout):
        return self.solicit_timeout if timeout is _UNSET else timeout

    def _send(self, text):
        if self.transport is None:
            raise InvalidStateError(f"no websocket to send on, {self.ws_url} never opened")
        if self.state is ServiceState.CLOSED:
            raise InvalidStateError(f"service {self.ws_url} is closed")
        self.transport.send(text)

    # transport events

    def _transport_opened(self):
        if self.state is not ServiceState.CONNECTING:
            return
        self.state = ServiceState.OPEN
        self._opened_event.set()
        logger.info(f"[SERVICE] connection opened {self.ws_url}")
        self._fire(self.on_open)

    def _transport_closed(self):
        if self.state is ServiceState.CLOSED:
            return
        logger.info(f"[SERVICE] connection closed {self.ws_url}")
        self._closed()

    def _transport_errored(self, exp):
        if not isinstance(exp, ServiceError):
            error = TransportRuntimeError("Error in websocket", path=self.ws_url)
            error.__cause__ = exp
            exp = error
        self._report(exp)

    def _transport_message(self, text):
        if self.state is ServiceState.CLOSED:
            return
        self.dispatcher.submit(text)

    def _closed(self):
        self.state = ServiceState.CLOSED
        self.dispatcher.abandon_all()
        self._closed_event.set()
        self._fire(self.on_close)

    def _report(self, error):
        self._fire(self.on_error, error)

    @staticmethod
    def _fire(hook, *args):
        try:
            hook(*args)
        except Exception as exp:
            logger.error(f"[SERVICE] exception in hook {use.func_str(hook)}", exc_info=exp)

    def __repr__(self):
        return f"<Service {self.ws_url} {self.state.value} pending={self.pending}>"
