import asyncio
import json
import logging
import logging.config
from contextlib import AsyncExitStack
from pathlib import Path

from svcrest.avails import const

_FALLBACK_FORMAT = "[%(levelname)s|%(name)s|L%(lineno)d] %(asctime)s: %(message)s"


async def initiate(exit_stack: AsyncExitStack, config_path=None):
    """Applies the json logging configuration and starts the listeners of its queue handlers

    File handler names are resolved under ``const.PATH_LOG``,
    listeners are stopped when ``exit_stack`` unwinds
    """
    log_config = {}
    config_path = config_path or const.PATH_LOG_CONFIG

    def _loader():
        nonlocal log_config
        with open(config_path) as fp:
            log_config = json.load(fp)

    def _log_exit():
        logging.getLogger().info("closing logging")
        for queue_handler in queue_handlers:
            q_listener = getattr(queue_handler, 'listener')
            q_listener.stop()
            for hand in q_listener.handlers:
                hand.close()

    if not Path(config_path).exists():
        logging.basicConfig(level=logging.DEBUG if const.debug else logging.INFO, format=_FALLBACK_FORMAT)
        logging.getLogger().warning(f"no logging configuration at {config_path}, logging to stderr")
        return

    await asyncio.to_thread(_loader)

    for handler in log_config["handlers"]:
        if "filename" in log_config["handlers"][handler]:
            log_config["handlers"][handler]["filename"] = str(
                Path(const.PATH_LOG, log_config["handlers"][handler]["filename"]))

    if const.debug:
        log_config.setdefault("root", {})["level"] = "DEBUG"

    logging.config.dictConfig(log_config)

    queue_handlers = []

    for q_handler in log_config.get("queue_handlers", ()):
        queue_handlers.append(logging.getHandlerByName(q_handler))

    if not any(queue_handlers):
        return

    for q_handler in queue_handlers:
        queue_listener = getattr(q_handler, 'listener')
        queue_listener.start()

    exit_stack.callback(_log_exit)
