import asyncio
import functools
import inspect
from collections.abc import Mapping
from typing import Callable, Optional

from svcrest.avails import (
    BaseDispatcher,
    CorrelationTable,
    HandlerDispatchFailure,
    ID,
    InvalidPacket,
    InvalidStateError,
    KIND,
    MissingHandler,
    ServiceMessage,
    SolicitTimeout,
    use,
)
from svcrest.conduit import logger


class ReplyCallback:
    """One shot continuation handed to an implementation along with a request or consume event

    Called with an object carrying a ``reply`` field, the request id is put back on it
    and the reply path is reinstated if only the leaf name is supplied::

        request path "math/add", reply "sum"  ->  reply "math/add/sum"

    """

    __slots__ = 'path', 'msg_id', '_send', '_sent'

    def __init__(self, path, msg_id, send: Callable[[str], None]):
        self.path = path
        self.msg_id = msg_id
        self._send = send
        self._sent = False

    def __call__(self, reply: Mapping):
        if self._sent:
            raise InvalidStateError(f"reply to {self.path} id={self.msg_id} already sent")

        if not isinstance(reply, Mapping) or not reply.get(KIND.REPLY):
            raise InvalidPacket(f"reply to {self.path} has no reply field", path=self.path)

        message = ServiceMessage(reply)
        message.msg_id = self.msg_id
        message[KIND.REPLY] = use.under_path(self.path, message[KIND.REPLY])

        self._send(str(message))
        self._sent = True

    @property
    def sent(self):
        return self._sent

    def __repr__(self):
        return f"ReplyCallback(path={self.path!r}, id={self.msg_id!r}, sent={self._sent})"


class MessageDispatcher(BaseDispatcher):
    """Classifies every inbound event and drives the correlation table and the implementations

    Nothing raised while handling an inbound event leaves :meth:`submit`,
    failures are handed to ``report`` as typed :class:`ServiceError` values

    Attributes:
        correlations (CorrelationTable): outstanding solicits of this dispatcher only
    """

    __slots__ = 'correlations', '_send', '_report', '_tasks'

    def __init__(self, registry, send: Callable[[str], None], report: Callable[[Exception], None]):
        super().__init__(registry)
        self.correlations = CorrelationTable()
        self._send = send
        self._report = report
        self._tasks = set()

    # outbound

    def notify(self, path, payload: Optional[Mapping] = None):
        self._send(str(ServiceMessage.build(KIND.NOTIFY, path, payload)))

    def solicit(self, path, payload: Optional[Mapping], continuation: Callable, *,
                timeout=None, on_expire=None, on_abandon=None):
        """Sends a solicit event, ``continuation`` gets called with the response

        Args:
            path(str): operation path
            payload(Mapping | None): extra fields of the solicit
            continuation(Callable[[ServiceMessage], None]): called at most once with the cleaned response
            timeout(float | None): seconds to wait before the entry expires, needs a running event loop
            on_expire(Callable[[SolicitTimeout], None]): called on expiry instead of reporting
            on_abandon(Callable[[], None]): called if the entry is dropped when the channel goes away

        Returns:
            str: correlation id of the solicit
        """
        msg_id = self.correlations.register(path, continuation, on_abandon)
        message = ServiceMessage.build(KIND.SOLICIT, path, payload, msg_id)

        if timeout is not None:
            entry = self.correlations.get(msg_id)
            entry.timer = asyncio.get_running_loop().call_later(timeout, self.expire, msg_id, on_expire)

        # the response may already be dispatched by the time send returns
        try:
            self._send(str(message))
        except Exception:
            self.correlations.resolve(msg_id)
            raise

        return msg_id

    def expire(self, msg_id, on_expire=None):
        entry = self.correlations.expire(msg_id)
        if entry is None:
            return

        error = SolicitTimeout(f"no response for solicit {entry.path} id={msg_id}", path=entry.path)
        logger.warning(f"[DISPATCH] {error}")
        if on_expire is not None:
            on_expire(error)
        else:
            self._report(error)

    def abandon_all(self):
        if count := self.correlations.abandon_all():
            logger.info(f"[DISPATCH] dropped {count} pending solicit(s)")
        return count

    @property
    def pending(self):
        return len(self.correlations)

    # inbound

    def submit(self, data):
        try:
            message = data if isinstance(data, ServiceMessage) else ServiceMessage.from_wire(data)
        except InvalidPacket as ip:
            logger.debug("[DISPATCH]", exc_info=ip)
            return self._report(ip)

        match message.kind:
            case KIND.RESPONSE:
                self._response_arrived(message)
            case KIND.REQUEST | KIND.CONSUME:
                self._request_arrived(message)
            case None:
                self._report(InvalidPacket("message without kind field", message=message))
            case kind:
                self._report(InvalidPacket(f"unexpected {kind} event from peer", path=message.path, message=message))

    dispatch = submit

    def _response_arrived(self, message: ServiceMessage):
        msg_id = message.msg_id
        entry = None if msg_id is None else self.correlations.resolve(str(msg_id))
        if entry is None:
            logger.debug(f"[DISPATCH] dropping unmatched response {message!r}")
            return

        message[KIND.RESPONSE] = use.last_segment(message[KIND.RESPONSE])
        message.pop(ID, None)

        try:
            entry.continuation(message)
        except Exception as exp:
            self._failure(HandlerDispatchFailure, f"exception calling back solicit {entry.path}",
                          entry.path, message, exp)

    def _request_arrived(self, message: ServiceMessage):
        try:
            message.field_check()
        except InvalidPacket as ip:
            return self._report(ip)

        path = message.path
        reply = ReplyCallback(path, message.pop(ID), self._send)

        try:
            handler = self.registry[path]
        except (KeyError, TypeError) as exp:
            return self._failure(MissingHandler, f"no implementation for {path}", path, message, exp)

        logger.debug(f"[DISPATCH] {message.kind} {path} -> {use.func_str(handler)}")

        try:
            result = handler(message, reply)
        except Exception as exp:
            return self._failure(HandlerDispatchFailure, f"exception calling back implementation {path}",
                                 path, message, exp)

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(functools.partial(self._handler_done, path, message))

    def _handler_done(self, path, message, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        if exp := task.exception():
            self._failure(HandlerDispatchFailure, f"exception in implementation {path}", path, message, exp)

    def _failure(self, error_class, text, path, message, cause):
        logger.error(f"[DISPATCH] {text} {message!r}", exc_info=cause)
        error = error_class(text, path=path, message=message)
        error.__cause__ = cause
        self._report(error)
