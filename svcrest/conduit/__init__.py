"""Multiplexing of svc_rest events over a single websocket

* ``service`` module is the one to be used for talking to a remote service
* ``dispatch`` correlates responses and drives registered implementations
* ``transport`` is the websocket backed channel

"""

import logging

logger = logging.getLogger(__package__)
