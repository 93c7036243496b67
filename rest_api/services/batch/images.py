"""
Download external product images into object storage.

Every URL is checked against SSRF rules before any request is made:
only http(s), no localhost, and no hostname resolving into a private,
loopback or link-local range. Redirects are not followed. The request
connects to the address the guard approved instead of resolving the
hostname a second time.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import httpx

from shared.config.logging import storage_logger as logger
from shared.infrastructure.storage import StorageClient, StorageError
from shared.utils.validators import (
    ExternalTarget,
    Resolver,
    UrlValidationError,
    resolve_external_url,
    resolve_host,
)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_WORKERS = 3


class ImageIngestionError(Exception):
    """A single image URL could not be ingested. The message names the URL."""


@dataclass(frozen=True, slots=True)
class IngestResult:
    source_url: str
    stored_url: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.stored_url is not None


class ImageIngestor:
    """
    Fetch-validate-upload pipeline for product images.

    Usage:
        ingestor = ImageIngestor(storage)
        url = ingestor.ingest("https://cdn.example.com/milk.jpg", product_id)
    """

    def __init__(
        self,
        storage: StorageClient | None,
        http_client: httpx.Client | None = None,
        resolver: Resolver = resolve_host,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        workers: int = DEFAULT_WORKERS,
    ):
        self._storage = storage
        self._client = http_client or httpx.Client(timeout=timeout, follow_redirects=False)
        self._resolver = resolver
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._workers = max(1, workers)

    @property
    def storage(self) -> StorageClient | None:
        return self._storage

    def close(self) -> None:
        self._client.close()

    def _download(self, target: ExternalTarget) -> tuple[bytes, str]:
        url = target.url
        try:
            with self._client.stream("GET", **_pinned_request(target), timeout=self._timeout) as response:
                if response.status_code != 200:
                    raise ImageIngestionError(
                        f"failed to download image from {url}: HTTP {response.status_code}"
                    )
                content_type = response.headers.get("content-type", "")
                if not content_type:
                    raise ImageIngestionError(f"no content-type header returned from {url}")
                if not content_type.lower().startswith("image/"):
                    raise ImageIngestionError(
                        f"URL {url} returned non-image content-type: {content_type} (expected image/*)"
                    )

                chunks = []
                size = 0
                for chunk in response.iter_bytes():
                    size += len(chunk)
                    if size > self._max_bytes:
                        raise ImageIngestionError(
                            f"image at {url} exceeds the {self._max_bytes // (1024 * 1024)}MB limit"
                        )
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise ImageIngestionError(f"failed to download image from {url}: {e}") from e

        return b"".join(chunks), content_type.split(";", 1)[0].strip()

    def ingest(self, url: str, product_id: str) -> str:
        """
        Download one image and store it for a product.

        Returns:
            Public URL of the stored object.

        Raises:
            ImageIngestionError: Validation, download or upload failed.
        """
        try:
            target = resolve_external_url(url, resolver=self._resolver)
        except UrlValidationError as e:
            raise ImageIngestionError(f"URL validation failed for {url}: {e}") from e

        if self._storage is None:
            raise ImageIngestionError(f"cannot store image {url}: object storage is not configured")

        data, content_type = self._download(target)

        try:
            stored = self._storage.upload_ingested_image(str(product_id), data, content_type)
        except StorageError as e:
            raise ImageIngestionError(f"failed to upload image from {url}: {e}") from e

        logger.info("Image ingested", source_url=url, stored_url=stored, product_id=str(product_id))
        return stored

    def _safe_ingest(self, url: str, product_id: str) -> IngestResult:
        try:
            return IngestResult(source_url=url, stored_url=self.ingest(url, product_id))
        except ImageIngestionError as e:
            logger.warning("Image ingestion failed", source_url=url, error=str(e))
            return IngestResult(source_url=url, error=str(e))

    def ingest_many(self, urls: Sequence[str], product_id: str) -> list[IngestResult]:
        """
        Ingest several URLs concurrently. Results keep the input order so
        the first successful one can be marked primary.
        """
        if not urls:
            return []
        if len(urls) == 1:
            return [self._safe_ingest(urls[0], product_id)]
        with ThreadPoolExecutor(
            max_workers=min(self._workers, len(urls)), thread_name_prefix="image-ingest"
        ) as pool:
            return list(pool.map(lambda u: self._safe_ingest(u, product_id), urls))


def _pinned_request(target: ExternalTarget) -> dict:
    """
    Request arguments that connect to the validated address while keeping
    the original Host header and TLS server name.
    """
    original = httpx.URL(target.url)
    address = target.addresses[0]
    host = f"[{address}]" if ":" in address else address
    extensions = {}
    if original.scheme == "https":
        extensions["sni_hostname"] = target.hostname
    return {
        "url": original.copy_with(host=host),
        "headers": {"Host": original.netloc.decode("ascii")},
        "extensions": extensions,
    }
