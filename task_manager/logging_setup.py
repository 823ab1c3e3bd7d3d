import logging
import sys

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with a single stderr handler.

    Safe to call more than once; only the first call installs the handler.
    """
    global _configured
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    if _configured:
        return

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(fmt)
    root.addHandler(handler)

    # uvicorn already logs each request; ours carries the timing
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    _configured = True
