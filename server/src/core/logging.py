import logging
from typing import Any

LOGGER_PREFIX = "server.src."


def get_logger(name_or_obj: Any) -> logging.Logger:
    """Return a logger named after the module, without the "server.src." prefix.

    Accepts a module name string or any object with a `__name__`, so log
    overrides can use short names such as "services.poller".
    """
    name = getattr(name_or_obj, "__name__", None) or str(name_or_obj)
    if name.startswith(LOGGER_PREFIX):
        name = name[len(LOGGER_PREFIX):]
    return logging.getLogger(name)
