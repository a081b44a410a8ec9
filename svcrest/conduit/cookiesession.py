"""Cookie session opened over https before the websocket handshake

Some websocket clients can't present the TLS client certificate during the
handshake, if the user is only identified by that certificate the service
refuses the websocket. The workaround is to ask the server which kind of
connection the user has, and, for ``client_cert`` connections, open a cookie
session over plain https first. The cookie is then sent with the handshake.

"""

import asyncio
from urllib.parse import urljoin
from xml.etree import ElementTree

import requests

from svcrest.avails import CannotConnect, const
from svcrest.conduit import logger

CLIENT_CERT = "client_cert"


def connection_type(document: bytes) -> str:
    """Value of ``//prop[@name="connection"]/@type`` in the user document, empty if absent"""
    root = ElementTree.fromstring(document)
    for prop in root.iter('prop'):
        if prop.get('name') == 'connection':
            return prop.get('type', '')
    return ''


class CookieSession:
    """Awaitable pre-connect hook for :class:`WebSocketTransport`

    Returns:
        dict: ``Cookie`` handshake header, empty if the server set no cookies
    """

    def __init__(self, http_base, *, cert=None, verify=True, timeout=const.HTTP_TIMEOUT):
        self.url = urljoin(http_base, const.COOKIE_SESSION_PATH)
        self.cert = cert
        self.verify = verify
        self.timeout = timeout

    def __call__(self):
        return asyncio.to_thread(self.establish)

    def establish(self) -> dict:
        try:
            with requests.Session() as session:
                session.cert = self.cert
                session.verify = self.verify

                response = session.get(self.url, headers={'Accept': 'application/xml'}, timeout=self.timeout)
                response.raise_for_status()

                if connection_type(response.content) == CLIENT_CERT:
                    session.post(self.url, headers={'Accept': 'application/xml'}, timeout=self.timeout).raise_for_status()
                    logger.warning("[COOKIE] cookie session opened automatically")

                cookies = session.cookies.get_dict()
        except requests.RequestException as re:
            raise CannotConnect(f"cookie session request to {self.url} failed") from re
        except ElementTree.ParseError as pe:
            raise CannotConnect(f"unexpected user document from {self.url}") from pe

        if not cookies:
            return {}
        return {'Cookie': "; ".join(f"{name}={value}" for name, value in cookies.items())}
