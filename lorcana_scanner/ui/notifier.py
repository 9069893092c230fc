"""Audible and logged feedback for accepted cards."""

import subprocess
import sys
from typing import Optional

from ..core.types import CatalogEntry
from ..utils.log import get_logger


class SimpleNotifier:
    """Beep plus a status message per accepted card."""

    def __init__(self):
        self.logger = get_logger(__name__)

    def beep(self) -> bool:
        """Play system beep sound."""
        try:
            if sys.platform == "darwin":
                subprocess.run(
                    ["afplay", "/System/Library/Sounds/Glass.aiff"], capture_output=True, check=False
                )
            else:
                print("\a", end="", flush=True)
            return True
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.debug("Error playing beep", error=str(e))
            return False

    def status_toast(self, message: str, level: str = "info"):
        """Log a status message at the matching level."""
        log = {
            "success": self.logger.info,
            "error": self.logger.error,
            "warning": self.logger.warning,
        }.get(level, self.logger.info)
        log(f"{level.upper()}: {message}")

    def card_matched(self, card: CatalogEntry, method: Optional[str] = None) -> bool:
        """Feedback for one accepted card; returns whether the beep played."""
        suffix = f" via {method}" if method else ""
        self.status_toast(f"{card.display} [{card.set_code} #{card.cn}]{suffix}", level="success")
        return self.beep()


# Global singleton
notifier = SimpleNotifier()
