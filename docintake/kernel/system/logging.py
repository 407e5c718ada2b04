import io
import logging
import sys


class _DummyStream(io.TextIOBase):
    """
    A file-like object that discards all input.
    Keeps handlers alive when the host process runs without stdout/stderr.
    """

    def write(self, x: str) -> int:
        return len(x)

    def flush(self) -> None:
        pass


def init_streams() -> None:
    """
    Ensures sys.stdout and sys.stderr are not None.
    """
    if sys.stdout is None:
        sys.stdout = _DummyStream()
    if sys.stderr is None:
        sys.stderr = _DummyStream()


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Sets up the package-wide logging configuration.
    """
    init_streams()

    logger = logging.getLogger("docintake")
    logger.setLevel(level)

    # Prevent duplicate handlers if called multiple times
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Helper to get a sub-logger for a specific module.
    Module paths already rooted at the package are used as-is.
    """
    if not name:
        return logging.getLogger("docintake")
    if name == "docintake" or name.startswith("docintake."):
        return logging.getLogger(name)
    return logging.getLogger(f"docintake.{name}")
