"""Logging configuration for the kubeprep package."""
import logging

from .config import Config

# Libraries that log every packet or channel event at DEBUG
NOISY_LOGGERS = ('paramiko', 'paramiko.transport')


def setup_logging(debug_mode: bool = False) -> None:
    """Configure root logging for a CLI run.

    Module loggers are named ``kubeprep.<area>`` and propagate here; host
    tasks add a ``[host-id]`` prefix through ``RunContext.host_logger``.
    """
    log_level = logging.DEBUG if debug_mode else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=Config.LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.StreamHandler()],
        force=True,
    )
    if not debug_mode:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
