"""
HTTP download of dataset artifacts with retry logic.

This module provides:
- Streamed download to disk (artifacts are hundreds of MB)
- Exponential backoff retry for timeouts, transport errors and 5xx responses
- Immediate failure on 4xx responses
- Atomic placement: data is written to "<dest>.part" and renamed on success,
  so an interrupted download never leaves a file that looks complete
"""

import asyncio
import os
from pathlib import Path
from typing import Optional, Union

import httpx
import logging

from core.config import settings
from core.exceptions import FetchError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class HttpFetcher:
    """
    Download a URL to a local path.

    Attributes:
        timeout: Request timeout in seconds
        max_retries: Total attempts for retryable failures
        retry_delay: Initial retry delay in seconds, doubled each attempt
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self.max_retries = max(1, max_retries if max_retries is not None else settings.MAX_RETRIES)
        self.retry_delay = retry_delay if retry_delay is not None else settings.RETRY_DELAY
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        )

    async def download(self, url: str, dest: Union[str, Path]) -> Path:
        """
        Download url to dest.

        Returns:
            Path of the completed file

        Raises:
            FetchError: non-2xx response, or retryable failure after max_retries
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        part = dest.with_name(dest.name + ".part")

        async with self._client() as client:
            for attempt in range(self.max_retries):
                delay = self.retry_delay * (2 ** attempt)
                last_attempt = attempt == self.max_retries - 1

                try:
                    logger.info(f"Downloading {url} (attempt {attempt + 1}/{self.max_retries})")

                    async with client.stream("GET", url) as response:
                        if response.status_code >= 500:
                            if not last_attempt:
                                logger.warning(
                                    f"Server error {response.status_code}. "
                                    f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                                )
                                await asyncio.sleep(delay)
                                continue
                            raise FetchError(
                                f"Server error after {self.max_retries} attempts",
                                context={
                                    "url": url,
                                    "status_code": response.status_code,
                                    "retry_count": attempt + 1,
                                },
                            )

                        if not response.is_success:
                            raise FetchError(
                                f"Download failed with HTTP {response.status_code}",
                                context={"url": url, "status_code": response.status_code},
                            )

                        size = 0
                        with open(part, "wb") as fh:
                            async for chunk in response.aiter_bytes(CHUNK_SIZE):
                                fh.write(chunk)
                                size += len(chunk)

                    os.replace(part, dest)
                    logger.info(f"Downloaded {size} bytes to {dest}")
                    return dest

                except FetchError:
                    self._discard(part)
                    raise

                except httpx.TimeoutException as e:
                    self._discard(part)
                    if last_attempt:
                        raise FetchError(
                            f"Download timeout after {self.max_retries} attempts",
                            context={"url": url, "timeout": self.timeout, "retry_count": attempt + 1},
                            original_exception=e,
                        )
                    logger.warning(f"Download timeout. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)

                except httpx.TransportError as e:
                    self._discard(part)
                    if last_attempt:
                        raise FetchError(
                            f"Network error after {self.max_retries} attempts",
                            context={"url": url, "retry_count": attempt + 1},
                            original_exception=e,
                        )
                    logger.warning(f"Network error. Retrying in {delay} seconds: {str(e)}")
                    await asyncio.sleep(delay)

                except OSError as e:
                    self._discard(part)
                    raise FetchError(
                        "Failed to write downloaded artifact",
                        context={"url": url, "destination": str(dest)},
                        original_exception=e,
                    )

        raise FetchError("Max retries exceeded", context={"url": url})

    @staticmethod
    def _discard(part: Path) -> None:
        try:
            part.unlink()
        except FileNotFoundError:
            pass
