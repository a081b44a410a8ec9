import asyncio
import configparser
import os
import ssl
from pathlib import Path
from typing import NamedTuple

import svcrest.avails.constants as const
from svcrest.avails import UnsupportedBase
from svcrest.configurations import logger as _logger


class ServiceUrls(NamedTuple):
    http_base: str
    ws_base: str
    ws_url: str


def build_urls(base: str, href: str) -> ServiceUrls:
    """Works out both http and websocket bases, ``base`` can be prefixed with either ws[s]: or http[s]:

    Raises:
        UnsupportedBase: if base is neither
    """
    base = base.rstrip('/')
    if base.startswith('http'):
        http_base = base
        ws_base = base.replace('http', 'ws', 1)
    elif base.startswith('ws'):
        http_base = base.replace('ws', 'http', 1)
        ws_base = base
    else:
        raise UnsupportedBase(f"Unsupported base: {base}")

    return ServiceUrls(http_base, ws_base, "/".join((ws_base, const.WEBSOCKET_PATH, href.strip('/'))))


def print_constants():
    print_string = (
        f'\n:configuration choices{"=" * 32}\n'
        f'{"SERVICE_BASE": <20} : {const.SERVICE_BASE: <10}\n'
        f'{"SERVICE_HREF": <20} : {const.SERVICE_HREF: <10}\n'
        f'{"OPEN_TIMEOUT": <20} : {const.OPEN_TIMEOUT: <10}\n'
        f'{"PING_INTERVAL": <20} : {f"{const.PING_INTERVAL}": <10}\n'
        f'{"SOLICIT_TIMEOUT": <20} : {f"{const.SOLICIT_TIMEOUT}": <10}\n'
        f'{"MAX_SEND_BUFFER": <20} : {const.MAX_SEND_BUFFER_LEN: <10}\n'
        f'{"AUTO_COOKIE_SESSION": <20} : {f"{const.AUTO_COOKIE_SESSION}": <10}\n'
        f'{"=" * 56}\n'
    )
    with const.LOCK_PRINT:
        return print(print_string)


def set_paths(root=None):
    const.PATH_CURRENT = Path(root or os.getcwd())
    const.PATH_LOG = Path(const.PATH_CURRENT, 'logs')
    config_path = Path(const.PATH_CURRENT, 'configs')
    const.PATH_CONFIG = config_path
    const.PATH_CONFIG_FILE = Path(config_path, const.DEFAULT_CONFIG_FILE_NAME)
    const.PATH_LOG_CONFIG = Path(config_path, const.LOG_CONFIG_NAME)

    try:
        os.makedirs(const.PATH_LOG, exist_ok=True)
    except OSError as e:
        _logger.error(f"Error creating directory: {e} from set_paths()")


async def load_configs(path=None):
    config_map = configparser.ConfigParser(allow_no_value=True)
    path = Path(path or const.PATH_CONFIG_FILE)

    def _helper():
        if not path.exists():
            write_default_configurations(path)
        config_map.read(path)

    await asyncio.to_thread(_helper)

    set_constants(config_map)
    return config_map


def write_default_configurations(path):
    default_config_file = (
        '[SERVICE]\n'
        'base = ws://localhost:8000\n'
        'href =\n'
        '\n'
        '[TRANSPORT]\n'
        'open_timeout = 10\n'
        'close_timeout = 10\n'
        'ping_interval = 20\n'
        'max_send_buffer = 256\n'
        '\n'
        '[SOLICIT]\n'
        '# seconds, empty waits until the response arrives or the channel closes\n'
        'timeout =\n'
        '\n'
        '[TLS]\n'
        'certfile =\n'
        'keyfile =\n'
        'cafile =\n'
        'auto_cookie_session = false\n'
    )
    os.makedirs(Path(path).parent, exist_ok=True)
    with open(path, 'w+') as config_file:
        config_file.write(default_config_file)


def _optional(config_map, section, option, convert=str):
    value = config_map.get(section, option, fallback=None)
    if value is None or value.strip() == '':
        return None
    return convert(value)


def set_constants(config_map: configparser.ConfigParser) -> bool:
    """Sets global constants from values in the configuration file.

    Options missing from the file keep their current values.

    Returns:
        bool: True if configuration values were set successfully
    """

    const.SERVICE_BASE = config_map.get('SERVICE', 'base', fallback=const.SERVICE_BASE)
    const.SERVICE_HREF = config_map.get('SERVICE', 'href', fallback=const.SERVICE_HREF) or ''

    const.OPEN_TIMEOUT = config_map.getfloat('TRANSPORT', 'open_timeout', fallback=const.OPEN_TIMEOUT)
    const.CLOSE_TIMEOUT = config_map.getfloat('TRANSPORT', 'close_timeout', fallback=const.CLOSE_TIMEOUT)
    const.PING_INTERVAL = config_map.getfloat('TRANSPORT', 'ping_interval', fallback=const.PING_INTERVAL)
    const.MAX_SEND_BUFFER_LEN = config_map.getint('TRANSPORT', 'max_send_buffer', fallback=const.MAX_SEND_BUFFER_LEN)

    const.SOLICIT_TIMEOUT = _optional(config_map, 'SOLICIT', 'timeout', float)

    const.TLS_CERTFILE = _optional(config_map, 'TLS', 'certfile')
    const.TLS_KEYFILE = _optional(config_map, 'TLS', 'keyfile')
    const.TLS_CAFILE = _optional(config_map, 'TLS', 'cafile')
    const.AUTO_COOKIE_SESSION = config_map.getboolean('TLS', 'auto_cookie_session', fallback=False)

    if const.TLS_KEYFILE and not const.TLS_CERTFILE:
        _logger.warning("keyfile given without certfile, ignoring client certificate")
        const.TLS_KEYFILE = None

    return True


def make_ssl_context():
    """Client side ssl context carrying the configured client certificate, None when nothing is configured"""
    if not (const.TLS_CERTFILE or const.TLS_CAFILE):
        return None

    context = ssl.create_default_context(cafile=const.TLS_CAFILE)
    if const.TLS_CERTFILE:
        context.load_cert_chain(const.TLS_CERTFILE, const.TLS_KEYFILE)
    return context


def client_cert():
    """Client certificate in the form ``requests`` takes it"""
    if not const.TLS_CERTFILE:
        return None
    if const.TLS_KEYFILE:
        return const.TLS_CERTFILE, const.TLS_KEYFILE
    return const.TLS_CERTFILE
