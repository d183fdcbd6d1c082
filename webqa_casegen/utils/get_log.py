import logging
import os
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(filename)s (%(funcName)s:%(lineno)d)] - %(message)s"


class GetLog:
    """Root logger set-up for CLI runs: ``<log_dir>/<timestamp>/log.log`` plus ``error.log`` and the console."""

    logger = None
    log_folder = None

    @staticmethod
    def _handler(handler: logging.Handler, level: int) -> logging.Handler:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        return handler

    @classmethod
    def get_log(cls, level="info", log_dir="./logs"):
        """Configure the root logger on first call; later calls return it unchanged.

        Args:
            level (str): debug, info, warning or error; unknown names mean info.
            log_dir (str): parent of the per-run timestamped folder.
        """
        if cls.logger is not None:
            return cls.logger

        run_level = logging.getLevelName(str(level).upper())
        if not isinstance(run_level, int):
            run_level = logging.INFO

        cls.log_folder = os.path.join(log_dir, datetime.now().strftime("%Y-%m-%d_%H-%M-%S"))
        os.makedirs(cls.log_folder, exist_ok=True)

        root = logging.getLogger()
        root.setLevel(run_level)
        root.addHandler(cls._handler(
            TimedRotatingFileHandler(os.path.join(cls.log_folder, "log.log"), when="midnight",
                                     backupCount=3, encoding="utf-8"),
            run_level,
        ))
        root.addHandler(cls._handler(
            logging.FileHandler(os.path.join(cls.log_folder, "error.log"), encoding="utf-8"),
            logging.WARNING,
        ))
        root.addHandler(cls._handler(logging.StreamHandler(), run_level))

        cls.logger = root
        logging.info(f"Logging to {cls.log_folder} at level {logging.getLevelName(run_level)}")
        return root
