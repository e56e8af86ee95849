"""
Browser notifier — best-effort launch of the finished site.

On a headless server there is no browser; the URL is logged instead and
the notification still counts as delivered.
"""

from __future__ import annotations

import logging
import webbrowser

from stackconverge.adapters.base import Notifier
from stackconverge.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class BrowserNotifier(Notifier):
    def __init__(self, launch: bool = True):
        self._launch = launch

    @property
    def name(self) -> str:
        return "browser"

    def is_available(self) -> bool:
        try:
            webbrowser.get()
        except webbrowser.Error:
            return False
        return True

    def open_url(self, url: str) -> Receipt:
        opened = False
        if self._launch:
            try:
                opened = webbrowser.open(url, new=2)
            except webbrowser.Error as e:
                logger.debug("Browser launch failed: %s", e)
        if opened:
            logger.info("Opened %s in browser", url)
            return Receipt.success(
                adapter=self.name, operation="notify", output=f"Opened {url} in browser"
            )
        logger.info("Access the application at: %s", url)
        return Receipt.success(
            adapter=self.name,
            operation="notify",
            output=f"Access the application at: {url}",
            metadata={"opened": False},
        )
