from os import path
from threading import Lock

APP_NAME = "svcrest"

DEFAULT_CONFIG_FILE_NAME = "default_config.ini"
LOG_CONFIG_NAME = "log_config.json"

FORMAT = "utf-8"

SERVICE_BASE = "ws://localhost:8000"
SERVICE_HREF = ""
WEBSOCKET_PATH = "svc_rest/websocket"
COOKIE_SESSION_PATH = "/sse_cfg/user"

PATH_CURRENT = "."
PATH_LOG = "./logs"
PATH_CONFIG = "./configs"
PATH_CONFIG_FILE = path.join(PATH_CONFIG, DEFAULT_CONFIG_FILE_NAME)
PATH_LOG_CONFIG = path.join(PATH_CONFIG, LOG_CONFIG_NAME)

OPEN_TIMEOUT = 10
CLOSE_TIMEOUT = 10
PING_INTERVAL = 20
HTTP_TIMEOUT = 10
MAX_SEND_BUFFER_LEN = 256

# None keeps a solicit pending until its response arrives or the channel closes
SOLICIT_TIMEOUT = None

TLS_CERTFILE = None
TLS_KEYFILE = None
TLS_CAFILE = None
AUTO_COOKIE_SESSION = False

debug = False

LOCK_PRINT = Lock()
