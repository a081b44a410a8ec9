from abc import ABC, abstractmethod
from collections.abc import Mapping
from types import MappingProxyType
from typing import Callable, Optional


def _noop(*_):
    pass


class Transport(ABC):
    """Duplex, order preserving, message oriented channel

    Owner assigns the four event slots before calling :meth:`start`

    Attributes:
        on_open (Callable[[], None]): raised once the channel is usable
        on_close (Callable[[], None]): raised once, when the channel is gone
        on_error (Callable[[Exception], None]): informational, does not imply closing
        on_message (Callable[[str], None]): raised for every inbound message, in arrival order
    """

    def __init__(self):
        self.on_open: Callable[[], None] = _noop
        self.on_close: Callable[[], None] = _noop
        self.on_error: Callable[[Exception], None] = _noop
        self.on_message: Callable[[str], None] = _noop

    @abstractmethod
    def start(self) -> None:
        """Begin establishing the channel, must not block"""

    @abstractmethod
    def send(self, text: str) -> None:
        """Queue one message for sending, must not block"""

    @abstractmethod
    def close(self) -> None:
        """Request the channel to close, :attr:`on_close` follows later"""


class HandlerRegistry(Mapping):
    """Fixed lookup table from remote callable path to local implementation

    Supplied once, there is no way to register handlers afterward
    """

    __slots__ = '_handlers',

    def __init__(self, handlers: Optional[Mapping[str, Callable]] = None):
        self._handlers = MappingProxyType(dict(handlers or {}))

    def __getitem__(self, path):
        return self._handlers[path]

    def __iter__(self):
        return iter(self._handlers)

    def __len__(self):
        return len(self._handlers)

    def __repr__(self):
        return f"HandlerRegistry({list(self._handlers)})"


class AbstractDispatcher(ABC):

    @abstractmethod
    def submit(self, event):
        pass


class BaseDispatcher(AbstractDispatcher):
    """
    Attributes:
        registry (HandlerRegistry): looked up when an event occurs
    """

    __slots__ = 'registry',

    def __init__(self, registry, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if not isinstance(registry, HandlerRegistry):
            registry = HandlerRegistry(registry)
        self.registry = registry

    def __call__(self, *args, **kwargs):
        return self.submit(*args, **kwargs)

    def submit(self, event):
        """Called when event occurs
        """


__all__ = (
    'Transport',
    'HandlerRegistry',
    'AbstractDispatcher',
    'BaseDispatcher',
)
