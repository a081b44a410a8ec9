import asyncio as _asyncio
from typing import Awaitable, Callable, Optional

import websockets
from websockets.asyncio.client import connect
from websockets.uri import parse_uri

from svcrest.avails import Transport, TransportRuntimeError, const
from svcrest.conduit import logger


class WebSocketTransport(Transport):
    """Websocket backed :class:`Transport`

    Messages sent before the websocket is open are buffered and flushed once it opens,
    buffer is bounded, oldest message is discarded when it overflows

    Args:
        url(str): ws[s]:// address, validated here so that a malformed one fails synchronously
        additional_headers(dict): extra handshake headers
        ssl_context(ssl.SSLContext): used for wss:// addresses
        pre_connect(Callable[[], Awaitable[dict | None]]): awaited before connecting,
            may return extra handshake headers (cookie session for example)
    """

    def __init__(self, url, *, additional_headers=None, ssl_context=None,
                 pre_connect: Optional[Callable[[], Awaitable[Optional[dict]]]] = None,
                 buffer_size=const.MAX_SEND_BUFFER_LEN, open_timeout=const.OPEN_TIMEOUT,
                 ping_interval=const.PING_INTERVAL, close_timeout=const.CLOSE_TIMEOUT):
        super().__init__()
        self.secure = parse_uri(url).secure
        self.url = url
        self.additional_headers = dict(additional_headers or {})
        self.ssl_context = ssl_context
        self.pre_connect = pre_connect
        self.open_timeout = open_timeout
        self.ping_interval = ping_interval
        self.close_timeout = close_timeout
        self.max_buffer_size = buffer_size
        self.buffer = _asyncio.Queue(buffer_size)
        self.connection = None
        self._connect_task = None
        self._sender_task = None
        self._close_task = None
        self._closing = False
        self._finalized = False

    @property
    def is_open(self):
        return self.connection is not None and not self._finalized

    def start(self):
        if self._connect_task is not None:
            return
        self._connect_task = _asyncio.get_running_loop().create_task(self._run())

    def send(self, text):
        if self._closing or self._finalized:
            logger.warning(f"[TRANSPORT] can't send, websocket closing, dropping {text}")
            return

        if self.buffer.full():
            logger.warning(f"[TRANSPORT] discarding websocket message {self.buffer.get_nowait()}, buffer full")
            self.buffer.task_done()
        self.buffer.put_nowait(text)

    def close(self):
        if self._closing or self._finalized:
            return
        self._closing = True

        if self.connection is not None:
            self._close_task = _asyncio.get_running_loop().create_task(self._close_connection())
        elif self._connect_task is not None:
            self._connect_task.cancel()
        else:
            self._finalize()

    async def _close_connection(self):
        try:
            await _asyncio.wait_for(self.buffer.join(), self.close_timeout)
        except TimeoutError:
            logger.warning(f"[TRANSPORT] closing with {self.buffer.qsize()} unsent message(s)")
        await self.connection.close()

    async def _connect(self):
        headers = dict(self.additional_headers)
        if self.pre_connect is not None:
            headers.update(await self.pre_connect() or {})

        kwargs = {}
        if self.secure and self.ssl_context is not None:
            kwargs['ssl'] = self.ssl_context

        return await connect(
            self.url,
            additional_headers=headers,
            open_timeout=self.open_timeout,
            ping_interval=self.ping_interval,
            close_timeout=self.close_timeout,
            **kwargs,
        )

    async def _run(self):
        try:
            try:
                connection = await self._connect()
            except Exception as exp:
                logger.error(f"[TRANSPORT] cannot connect to {self.url}", exc_info=exp)
                self.on_error(self._runtime_error(f"cannot connect to {self.url}", exp))
                return

            if self._closing:
                await connection.close()
                return

            self.connection = connection
            logger.info(f"[TRANSPORT] websocket connected {self.url}")
            self._sender_task = _asyncio.create_task(self._send_buffer())
            self.on_open()

            try:
                async for data in connection:
                    if isinstance(data, bytes):
                        data = data.decode(const.FORMAT)
                    self.on_message(data)
            except websockets.exceptions.ConnectionClosedError as cce:
                logger.error(f"[TRANSPORT] websocket closed abnormally {self.url}", exc_info=cce)
                self.on_error(self._runtime_error("websocket closed abnormally", cce))
            else:
                logger.info(f"[TRANSPORT] websocket closed {self.url}")
        finally:
            if self._sender_task is not None:
                self._sender_task.cancel()
            self._finalize()

    async def _send_buffer(self):
        while True:
            msg = await self.buffer.get()
            try:
                await self.connection.send(msg)
            except websockets.exceptions.ConnectionClosed:
                logger.warning(f"[TRANSPORT] websocket closed while sending, dropping {msg}")
                break
            finally:
                self.buffer.task_done()

    def _finalize(self):
        if self._finalized:
            return
        self._finalized = True
        if not self.buffer.empty():
            logger.warning(f"[TRANSPORT] websocket buffer not empty len={self.buffer.qsize()}")
        self.on_close()

    @staticmethod
    def _runtime_error(text, cause):
        error = TransportRuntimeError(text)
        error.__cause__ = cause
        return error
