"""Minimal JSON-over-HTTPS client for provider REST APIs."""

from __future__ import annotations

import contextlib
import json
import logging
import ssl
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from autocert.runners.base import DistributionError

log = logging.getLogger(__name__)

_ERROR_BODY_LIMIT = 500


class JsonApiClient:
    """Send JSON requests relative to *base_url*.

    Parameters
    ----------
    base_url:
        API root, without a trailing slash.
    timeout:
        Per-request socket timeout in seconds.
    headers:
        Headers sent with every request (authentication, for example).
    label:
        Provider name used in error messages.

    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30,
        headers: dict[str, str] | None = None,
        label: str = "provider",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.label = label
        self._ssl_ctx = ssl.create_default_context()

    def url(self, path: str, params: dict[str, str] | None = None) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params)}"
        return url

    def get(self, path: str, params: dict[str, str] | None = None) -> Any:  # noqa: ANN401
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Any = None) -> Any:  # noqa: ANN401
        return self.request("POST", path, payload=payload)

    def put(self, path: str, payload: Any = None) -> Any:  # noqa: ANN401
        return self.request("PUT", path, payload=payload)

    def request(
        self,
        method: str,
        path: str,
        *,
        payload: Any = None,  # noqa: ANN401
        params: dict[str, str] | None = None,
    ) -> Any:  # noqa: ANN401
        """Send one request and return the decoded JSON body (or ``None``).

        Raises
        ------
        DistributionError
            On transport failure, a non-2xx status or an undecodable body.

        """
        url = self.url(path, params)
        headers = {"Accept": "application/json", **self.headers}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = urllib.request.Request(url, data=data, headers=headers, method=method)  # noqa: S310

        log.debug("%s %s %s", self.label, method, url)
        try:
            with urllib.request.urlopen(  # noqa: S310
                req, timeout=self.timeout, context=self._ssl_ctx,
            ) as resp:
                status = resp.status
                body = resp.read()
        except urllib.error.HTTPError as exc:
            detail = ""
            with contextlib.suppress(Exception):
                detail = exc.read().decode("utf-8", errors="replace")[:_ERROR_BODY_LIMIT]
            msg = f"{self.label} {method} {path} returned HTTP {exc.code}: {detail}"
            raise DistributionError(msg) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"failed to reach {self.label} at {url}: {exc}"
            raise DistributionError(msg) from exc

        if not 200 <= status < 300:  # noqa: PLR2004
            msg = f"{self.label} {method} {path} returned unexpected HTTP {status}"
            raise DistributionError(msg)
        if not body:
            return None
        try:
            return json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            msg = f"{self.label} returned invalid JSON for {method} {path}: {exc}"
            raise DistributionError(msg) from exc
