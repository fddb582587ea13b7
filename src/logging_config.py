import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

def setup_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    fmt: str = '%(asctime)s %(levelname)s [%(name)s] %(message)s',
    datefmt: str = '%Y-%m-%d %H:%M:%S',
    stream: Optional[TextIO] = None,
):
    """
    Configure root logger with a console handler (stderr by default, so
    stdout stays free for event output) and optional file handler.
    Call this once at application startup.
    """
    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(fmt, datefmt=datefmt)

    # Console handler
    ch = logging.StreamHandler(stream or sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    # File handler
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding='utf-8')
        fh.setLevel(level)
        fh.setFormatter(formatter)
        root.addHandler(fh)
    return root
