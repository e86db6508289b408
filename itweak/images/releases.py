"""Remote index of developer disk image releases."""

import typing as t
from pathlib import Path

import requests
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from tqdm import tqdm

from ..errors import DecodeError, NetworkError
from ..util.logging import get_logger
from .version import ReleaseDescriptor

logger = get_logger(__name__)

USER_AGENT = "itweaksuite"

_transient = retry(
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)


class ReleaseIndexClient:
    """Fetches the release list and downloads release archives."""

    def __init__(
        self,
        releases_url: str,
        download_base: str,
        timeout: int = 30,
        chunk_size: int = 64 * 1024,
        session: t.Optional[requests.Session] = None,
    ) -> None:
        self.releases_url = releases_url
        self.download_base = download_base.rstrip("/")
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    @classmethod
    def from_config(cls, config) -> "ReleaseIndexClient":
        return cls(
            releases_url=config.images.releases_url,
            download_base=config.images.download_base,
            timeout=config.images.request_timeout,
            chunk_size=config.images.chunk_size,
        )

    def archive_url(self, tag: str) -> str:
        """URL of the zip archive for a release tag."""
        return f"{self.download_base}/{tag}/{tag}.zip"

    @_transient
    def _get(self, url: str, stream: bool = False) -> requests.Response:
        response = self.session.get(url, timeout=self.timeout, stream=stream)
        response.raise_for_status()
        return response

    def fetch_releases(self) -> t.List[ReleaseDescriptor]:
        """Get every release listed by the index.

        Raises:
            NetworkError: If the request fails or returns a non-2xx status
            DecodeError: If the body is not a JSON array of release objects
        """
        try:
            response = self._get(self.releases_url)
        except requests.RequestException as e:
            raise NetworkError("Failed to fetch the release index", details=str(e)) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError("Release index is not valid JSON", details=str(e)) from e

        if not isinstance(payload, list):
            raise DecodeError("Release index is not a JSON array", details=type(payload).__name__)

        try:
            releases = [ReleaseDescriptor.model_validate(item) for item in payload]
        except ValidationError as e:
            raise DecodeError("Malformed release entry", details=str(e)) from e

        logger.debug(f"Release index lists {len(releases)} releases")
        return releases

    def download_archive(self, tag: str, destination: Path, show_progress: bool = False) -> Path:
        """Stream the archive for ``tag`` into ``destination``.

        Raises:
            NetworkError: If the download fails
        """
        url = self.archive_url(tag)
        logger.info(f"Downloading {url}")
        response = None
        try:
            response = self._get(url, stream=True)
            total = int(response.headers.get("content-length", 0)) or None
            with open(destination, "wb") as sink, tqdm(
                total=total,
                unit="B",
                unit_scale=True,
                desc=f"DevDisk {tag}",
                disable=not show_progress,
            ) as pbar:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        sink.write(chunk)
                        pbar.update(len(chunk))
        except requests.RequestException as e:
            raise NetworkError(f"Failed to download {url}", details=str(e)) from e
        finally:
            if response is not None:
                response.close()

        return destination
