"""Wire format of svc_rest websocket events

Every event is a single JSON object, the kind of event is given by which
of the kind fields it carries, the value of that field is the operation path::

    notify   : { notify:   <path>, ...payload }
    solicit  : { solicit:  <path>, id: <token>, ...payload }
    response : { response: <path>, id: <token>, ...payload }
    request  : { request:  <path>, id: <token>, ...payload }
    consume  : { consume:  <path>, id: <token>, ...payload }
    reply    : { reply:    <path-or-leaf>, id: <token>, ...payload }

"""

import json as _json
from collections.abc import Mapping, MutableMapping
from typing import Optional, Union

from svcrest.avails.exceptions import InvalidPacket


class KIND:
    NOTIFY = "notify"
    SOLICIT = "solicit"
    RESPONSE = "response"
    REQUEST = "request"
    CONSUME = "consume"
    REPLY = "reply"


# order matters, first kind field found wins when classifying
KINDS = (KIND.RESPONSE, KIND.REQUEST, KIND.CONSUME, KIND.REPLY, KIND.SOLICIT, KIND.NOTIFY)
CORRELATED_KINDS = frozenset(KINDS) - {KIND.NOTIFY}
ID = "id"


class ServiceMessage(MutableMapping):
    """
    A wrapper class around one wire event (as {<kind>: path, id, ...payload} format)
    """

    __slots__ = "__data",

    def __init__(self, data: Optional[Mapping] = None, *, serial_data: Union[str, bytes] = None):
        if serial_data is not None:
            try:
                data = _json.loads(serial_data)
            except (ValueError, TypeError) as exp:
                raise InvalidPacket(f"message is not valid json: {serial_data!r}") from exp
            if not isinstance(data, dict):
                raise InvalidPacket(f"message is not a json object: {serial_data!r}")

        self.__data: dict = dict(data or {})

    @classmethod
    def build(cls, kind, path, payload: Optional[Mapping] = None, msg_id=None):
        """Outbound constructor, kind and id are set after the payload so that payload can't shadow them"""
        message = cls(payload)
        message[kind] = path
        if msg_id is not None:
            message[ID] = msg_id
        return message

    @classmethod
    def from_wire(cls, serial_data):
        return cls(serial_data=serial_data)

    def __getitem__(self, key):
        return self.__data[key]

    def __setitem__(self, key, value):
        self.__data[key] = value

    def __delitem__(self, key):
        del self.__data[key]

    def __iter__(self):
        return iter(self.__data)

    def __len__(self):
        return len(self.__data)

    def __eq__(self, other):
        if isinstance(other, ServiceMessage):
            return self.__data == other.__data
        if isinstance(other, Mapping):
            return self.__data == dict(other)
        return NotImplemented

    @property
    def kind(self):
        """First kind field carrying a path, a null or empty kind field counts as absent"""
        for kind in KINDS:
            if self.__data.get(kind):
                return kind
        return None

    @property
    def path(self):
        kind = self.kind
        return None if kind is None else self.__data[kind]

    @property
    def msg_id(self):
        return self.__data.get(ID)

    @msg_id.setter
    def msg_id(self, message_id):
        self.__data[ID] = message_id

    def __str__(self):
        return _json.dumps(self.__data)

    def __repr__(self):
        return f"ServiceMessage({self.__data})"

    def field_check(self):
        match self.kind:
            case None:
                raise InvalidPacket(f"no kind field in message, expected one of {KINDS}", message=self)
            case kind if kind in CORRELATED_KINDS and ID not in self.__data:
                raise InvalidPacket(f"{kind} message without id", path=self.path, message=self)
