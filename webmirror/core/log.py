from __future__ import annotations

import logging
from typing import Optional

from webmirror.core.config import settings

LOGGER_NAMESPACE = "webmirror"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the ``webmirror`` logger namespace.

    ``logging.basicConfig`` is a no-op when the root logger already has
    handlers (e.g. when uvicorn installs its own before the app module is
    imported).  Configuring the package namespace directly, with
    ``propagate = False``, keeps application logs on stderr for both the API
    process and the command line tool.
    """
    level_name = (level or settings.log_level).upper()
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger(LOGGER_NAMESPACE)
    app_log.setLevel(getattr(logging, level_name, logging.INFO))
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False
