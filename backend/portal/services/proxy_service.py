from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from portal.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ProxyResponse:
    status_code: int
    body: Any
    is_json: bool


def forward(
    upstream_url: Optional[str],
    method: str,
    body: Any = None,
    timeout: int = 10,
    session: Optional[requests.Session] = None,
) -> ProxyResponse:
    """Forward a request to the upstream script endpoint and relay its answer.

    Raises ConfigurationError when no upstream is configured and
    requests.RequestException when the upstream cannot be reached.
    """
    if not upstream_url:
        raise ConfigurationError("Missing upstream URL in server env")
    http = session or requests
    method = method.upper()
    res = http.request(
        method,
        upstream_url,
        headers={"Content-Type": "application/json"},
        json=None if method == "GET" else body,
        timeout=timeout,
    )
    try:
        return ProxyResponse(res.status_code, res.json(), True)
    except ValueError:
        return ProxyResponse(res.status_code, res.text, False)
