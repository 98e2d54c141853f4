import functools
import logging
import pathlib as pl
import time

from cluster_deployer.utils import configuration

LOG_FILENAME = "deployer.log"


class _LogDir:
    path: pl.Path = configuration.ARTIFACTS_DIR


def get_framework_log_path() -> pl.Path:
    return _LogDir.path / LOG_FILENAME


def set_log_dir(log_dir: pl.Path) -> None:
    """Write the `deployer.log` file to `log_dir` from now on."""
    log_dir = pl.Path(log_dir)
    if log_dir == _LogDir.path:
        return
    _LogDir.path = log_dir

    # Drop the logger writing to the old location, it is recreated on next use
    if framework_logger.cache_info().currsize:
        logger = framework_logger()
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        framework_logger.cache_clear()


@functools.cache
def framework_logger() -> logging.Logger:
    """Get logger for the `deployer.log` file.

    It can be used for logging (and later reporting) events like acquired leases or a failure
    to bring up a cluster.
    """

    class UTCFormatter(logging.Formatter):
        converter = time.gmtime  # type: ignore[assignment]

    log_path = get_framework_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = UTCFormatter("%(asctime)s %(levelname)s %(message)s")
    handler = logging.FileHandler(log_path)
    handler.setFormatter(formatter)

    logger = logging.getLogger("deployer")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)

    return logger
