"""
Release fetcher — downloads application archives over HTTP(S).

The download goes to a temp file next to the destination and is only
renamed into place once complete, so an interrupted download never
looks like a cached archive on the next run.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

from stackconverge import __version__
from stackconverge.adapters.base import ReleaseFetcher
from stackconverge.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class HttpReleaseFetcher(ReleaseFetcher):
    """urllib-based downloader."""

    def __init__(self, timeout: int = 300):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "http"

    def is_available(self) -> bool:
        return True

    def fetch(self, url: str, dest: str) -> Receipt:
        target = Path(dest)
        req = urllib.request.Request(
            url, headers={"User-Agent": f"stackconverge/{__version__}"}
        )
        logger.info("Downloading %s", url)

        tmp: Path | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
            tmp = Path(tmp_name)
            with open(fd, "wb") as out, urllib.request.urlopen(req, timeout=self._timeout) as resp:
                shutil.copyfileobj(resp, out)
            size = tmp.stat().st_size
            tmp.replace(target)
        except (urllib.error.URLError, OSError, ValueError) as e:
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            return Receipt.failure(
                adapter=self.name,
                operation="fetch",
                error=f"Download of {url} failed: {e}",
                metadata={"url": url},
            )

        return Receipt.success(
            adapter=self.name,
            operation="fetch",
            output=f"Downloaded {size} bytes to {target}",
            metadata={"url": url, "size": size},
        )
