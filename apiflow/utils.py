"""
URL helpers shared by the client and the bindings.
"""

import re
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import quote, urlencode

_FILENAME_RE = re.compile(r"filename\*?=(?:UTF-8'')?\"?([^\";]+)\"?", re.IGNORECASE)


def is_absolute_url(endpoint: str) -> bool:
    return endpoint.startswith("http://") or endpoint.startswith("https://")


def join_url(base_url: str, endpoint: str) -> str:
    """
    Resolve ``endpoint`` against ``base_url``.

    Absolute URLs pass through unchanged; relative paths are normalized to
    start with ``/`` and prefixed with the base URL.
    """
    if is_absolute_url(endpoint):
        return endpoint

    path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
    return f"{base_url.rstrip('/')}{path}"


def with_query(endpoint: str, params: dict[str, Any]) -> str:
    """Append query parameters, keeping any already on the endpoint."""
    if not params:
        return endpoint
    separator = "&" if "?" in endpoint else "?"
    return f"{endpoint}{separator}{urlencode(params, quote_via=quote)}"


def filename_from_disposition(disposition: str | None) -> str | None:
    """
    Extract the filename from a Content-Disposition header.

    Only the final path component is kept, so a server-supplied name can
    never point outside the download directory.
    """
    if not disposition:
        return None
    match = _FILENAME_RE.search(disposition)
    if not match:
        return None
    name = PurePosixPath(match.group(1).strip().replace("\\", "/")).name
    return None if name in ("", ".", "..") else name
