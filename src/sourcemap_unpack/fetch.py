from __future__ import annotations

"""HTTP transport for scripts, sourcemaps and assets.

Targets are frequently staging hosts with self-signed certificates, so TLS
verification is off unless asked for. Timeouts and retries are owned here;
the restoration core only sees `get_bytes()`.
"""

import logging
from pathlib import Path

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "sourcemap-unpack"


class Client:
    def __init__(
        self,
        *,
        timeout: float | tuple[float, float] = DEFAULT_TIMEOUT,
        verify: bool = False,
        retries: int = 2,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.timeout = timeout
        self.session = requests.Session()
        self.session.verify = verify
        self.session.headers["User-Agent"] = USER_AGENT
        if headers:
            self.session.headers.update(headers)

        if not verify:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        adapter = HTTPAdapter(
            max_retries=Retry(
                total=retries,
                backoff_factor=0.5,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=("GET",),
                raise_on_status=False,
            )
        )
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _get(self, url: str, *, stream: bool = False) -> requests.Response:
        try:
            resp = self.session.get(url, timeout=self.timeout, stream=stream)
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

        if resp.status_code != 200:
            resp.close()
            raise FetchError(f"HTTP {resp.status_code} when fetching {url}")

        return resp

    def get_bytes(self, url: str) -> bytes:
        resp = self._get(url)
        logger.debug("GET %s (%d bytes)", url, len(resp.content))
        return resp.content

    def get_text(self, url: str) -> str:
        resp = self._get(url)
        if resp.encoding is None:
            resp.encoding = "utf-8"
        return resp.text

    def download(self, url: str, dest: Path) -> Path:
        """Stream `url` into `dest`, creating parent directories.

        A partially written file is removed if the transfer fails.
        """

        dest.parent.mkdir(parents=True, exist_ok=True)
        resp = self._get(url, stream=True)
        try:
            with dest.open("wb") as f:
                for chunk in resp.iter_content(chunk_size=64 * 1024):
                    f.write(chunk)
        except (requests.RequestException, OSError) as e:
            dest.unlink(missing_ok=True)
            raise FetchError(f"Failed to write {url} to {dest}: {e}") from e
        finally:
            resp.close()

        logger.debug("Downloaded %s -> %s", url, dest)
        return dest

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
