import itertools
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(slots=True)
class PendingSolicit:
    """One outstanding locally initiated solicit

    Attributes:
        id (str): correlation token sent along with the solicit
        path (str): path the solicit was sent to
        continuation (Callable): called with the cleaned response message
        on_abandon (Callable | None): called when the entry is dropped without a response
        timer (asyncio.TimerHandle | None): expiry timer, if a timeout was requested
    """
    id: str
    path: str
    continuation: Callable
    on_abandon: Optional[Callable] = None
    timer: object = None

    def cancel_timer(self):
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class CorrelationTable:
    """Maps outstanding solicits to the continuation waiting for their response

    ids come from a counter owned by this table, so they never collide
    with another pending solicit of the same instance

    Methods:
        register: records a continuation and returns its fresh id
        resolve: removes and returns the entry matching a response id
        abandon_all: drops every entry, used when the channel goes away

    """

    __slots__ = '_id_factory', '_pending'

    def __init__(self, start=1):
        self._id_factory = itertools.count(start)
        self._pending: dict[str, PendingSolicit] = {}

    def register(self, path, continuation, on_abandon=None) -> str:
        msg_id = self.id_factory
        while msg_id in self._pending:
            msg_id = self.id_factory
        self._pending[msg_id] = PendingSolicit(msg_id, path, continuation, on_abandon)
        return msg_id

    def get(self, msg_id) -> Optional[PendingSolicit]:
        return self._pending.get(msg_id)

    def resolve(self, msg_id) -> Optional[PendingSolicit]:
        entry = self._pending.pop(msg_id, None)
        if entry is not None:
            entry.cancel_timer()
        return entry

    expire = resolve

    def abandon_all(self) -> int:
        dropped = list(self._pending.values())
        self._pending.clear()
        for entry in dropped:
            entry.cancel_timer()
            if entry.on_abandon is not None:
                entry.on_abandon()
        return len(dropped)

    def pending_ids(self):
        return tuple(self._pending)

    def __contains__(self, msg_id):
        return msg_id in self._pending

    def __len__(self):
        return len(self._pending)

    @property
    def id_factory(self):
        return str(next(self._id_factory))
