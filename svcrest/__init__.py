"""svc_rest websocket services in python

Runs notify, solicit/response and request[consume]/reply over a single websocket,
see :class:`svcrest.conduit.service.Service`.
"""

from svcrest.avails import ServiceMessage
from svcrest.avails.exceptions import *
from svcrest.conduit.service import Service, ServiceState

__version__ = "1.0.0"
