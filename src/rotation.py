"""Periodic check for a newer log file in the watched directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from channels import Ticker
from errors import AppError, WatchError, WatchOp
from paths import find_latest_log_file

logger = logging.getLogger(__name__)


class RotationMonitor:
    """
    Ticks every ``interval`` seconds; on each tick :meth:`check` re-resolves
    the latest log file and returns it when it differs from ``current``.

    The monitor only reports. Switching sources is up to the caller, which
    then calls :meth:`advance`.
    """

    def __init__(
        self,
        log_dir: Path,
        current: Path,
        interval: float,
        find_latest: Callable[[Path], Path] = find_latest_log_file,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.current = Path(current)
        self.ticker = Ticker(interval)
        self._find_latest = find_latest
        self._log = log or logger

    def check(self) -> Optional[Path]:
        """Return the new latest file, or None if nothing changed."""
        try:
            latest = Path(self._find_latest(self.log_dir))
        except (AppError, OSError) as exc:
            raise WatchError(WatchOp.ROTATION, underlying=exc) from exc
        if latest == self.current:
            return None
        self._log.info("Log rotation detected: %s -> %s", self.current, latest)
        return latest

    def advance(self, latest: Path) -> None:
        self.current = Path(latest)

    def stop(self) -> None:
        self.ticker.stop()


__all__ = ["RotationMonitor"]
