"""
Streams a remote deployment package (e.g. the presigned URL from GetFunction)
to a local file.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

import requests

from lambda_transfer.config import DEFAULT_CHUNK_SIZE
from lambda_transfer.errors import FetchError
from lambda_transfer.progress import ProgressSink, as_tracker

LOGGER = logging.getLogger(__name__)

USER_AGENT = "LambdaTransfer/1.0"

# share of the budget reported once the response is established
_CONNECTED_SHARE = 0.2


def _redact(url: str) -> str:
    # presigned URLs carry credentials in the query string
    return url.split("?", 1)[0]


def fetch_artifact(
    url: str,
    destination: Union[str, os.PathLike],
    progress: Optional[ProgressSink] = None,
    session: Optional[requests.Session] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout: float = 60.0,
) -> int:
    """
    Download `url` into `destination` without buffering the whole body.

    The body is written to a sibling ".part" file and renamed into place once
    the download completes, so `destination` never holds a truncated artifact.

    Returns:
        Number of bytes written.

    Raises:
        FetchError: Transport error, non-2xx status, empty body or write error.
    """
    tracker = as_tracker(progress)
    target = Path(destination)
    partial = target.with_name(target.name + ".part")
    http = session or requests.Session()
    safe_url = _redact(url)
    total = 0

    LOGGER.debug("Starting download of %s", safe_url)
    try:
        with http.get(
            url,
            stream=True,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
        ) as response:
            response.raise_for_status()
            LOGGER.debug("Established download of %s", safe_url)
            tracker.report(tracker.budget * _CONNECTED_SHARE, "Connected")

            target.parent.mkdir(parents=True, exist_ok=True)
            with open(partial, "wb") as handle:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if not chunk:
                        continue
                    handle.write(chunk)
                    total += len(chunk)

        if total == 0:
            raise FetchError(f"Download of {safe_url} returned no data.")

        os.replace(partial, target)
    except requests.exceptions.HTTPError as exc:
        _discard(partial)
        status = exc.response.status_code if exc.response is not None else "unknown"
        raise FetchError(f"Failed to download {safe_url} (HTTP {status}).") from exc
    except requests.exceptions.RequestException as exc:
        _discard(partial)
        raise FetchError(f"Failed to download {safe_url}: {exc}") from exc
    except OSError as exc:
        _discard(partial)
        raise FetchError(f"Failed to write {target}: {exc}") from exc
    except FetchError:
        _discard(partial)
        raise
    finally:
        if session is None:
            http.close()

    tracker.finish("Download complete")
    LOGGER.debug("Download complete: %s (%d bytes)", target, total)
    return total


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warning("Failed to remove partial download %s: %s", path, exc)
