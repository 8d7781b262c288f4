"""
Download of remote blueprint archives.

``import`` accepts an ``http(s)://`` URL in place of a local path.  The
archive is streamed into the import working area with retries on transient
HTTP errors, then checked to be a zip before it is unpacked.

Usage example::

    from services.blueprint_fetch import download_blueprint

    zip_path = download_blueprint("https://example.com/starter.zip", "data/uploads/blueprints")
"""

from __future__ import annotations

import os
import time
import zipfile
from typing import Callable
from urllib.parse import unquote, urlparse

import requests

from blueprints.utils.errors import FetchError

RETRY_STATUSES = (429, 500, 502, 503, 504)
CHUNK_SIZE = 64 * 1024


def with_retries(
    fn: Callable[[], requests.Response],
    *,
    max_attempts: int = 5,
    base_delay: float = 0.7,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> requests.Response:
    """
    Execute a function returning a ``requests.Response``, retrying on
    transient HTTP errors.  Retries are attempted on status codes 429
    (too many requests) and 5xx server errors, and on connection errors.

    :param fn: A zero-argument callable that performs the HTTP request.
    :param max_attempts: Maximum number of attempts before giving up.
    :param base_delay: Base delay in seconds for exponential backoff.
    :param sleep_fn: Function used to wait between attempts.
    :return: The successful ``requests.Response``.
    :raises requests.RequestException: if all attempts fail.
    """
    attempt = 0
    while True:
        try:
            resp = fn()
            resp.raise_for_status()
            return resp
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if e.response is not None:
                e.response.close()
            if status not in RETRY_STATUSES or attempt >= max_attempts - 1:
                raise
            # Use Retry-After header if provided, otherwise exponential backoff
            retry_after = e.response.headers.get("Retry-After")
            try:
                wait = float(retry_after) if retry_after else base_delay * (2 ** attempt)
            except ValueError:
                wait = base_delay * (2 ** attempt)
            sleep_fn(wait)
            attempt += 1
        except requests.RequestException:
            if attempt >= max_attempts - 1:
                raise
            sleep_fn(base_delay * (2 ** attempt))
            attempt += 1


def is_remote(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def archive_name_from_url(url: str) -> str:
    name = os.path.basename(unquote(urlparse(url).path)) or "blueprint"
    if not name.lower().endswith(".zip"):
        name += ".zip"
    return name


def _discard(path: str) -> None:
    """Remove a partial download, if any."""
    if os.path.exists(path):
        os.remove(path)


def download_blueprint(
    url: str,
    upload_dir: str,
    *,
    timeout: float = 60,
    max_attempts: int = 5,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> str:
    """
    Stream the archive at ``url`` into ``upload_dir``.

    :return: Path of the downloaded zip.
    :raises FetchError: when the download fails or is not a zip archive.
    """
    destination = os.path.join(upload_dir, archive_name_from_url(url))

    def do_request() -> requests.Response:
        return requests.get(url, stream=True, timeout=timeout)

    try:
        resp = with_retries(do_request, max_attempts=max_attempts, sleep_fn=sleep_fn)
        os.makedirs(upload_dir, exist_ok=True)
        with resp, open(destination, "wb") as f:
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
    except requests.RequestException as e:
        _discard(destination)
        raise FetchError(f"Could not download {url}: {e}") from e
    except OSError as e:
        _discard(destination)
        raise FetchError(f"Could not save {url} to {destination}: {e}") from e

    if not zipfile.is_zipfile(destination):
        _discard(destination)
        raise FetchError(f"{url} did not return a zip archive.")
    return destination
