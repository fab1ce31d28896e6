from __future__ import annotations

import io
import logging
import urllib.request
from typing import TYPE_CHECKING, BinaryIO, Iterator, Optional
from urllib.parse import urljoin, urlparse

import httpx

from ..errors import READ_EXTERNAL_STORAGE, MediaError
from ..models import SourceKind
from .assets import open_asset
from .classifier import classify, file_url_to_path, is_external_file_url

if TYPE_CHECKING:
    from ..context import MediaContext

logger = logging.getLogger(__name__)

_HTTP_SCHEMES = ("http", "https")


class HttpResponseStream(io.RawIOBase):
    """Readable stream over a streamed httpx response.

    Closing the stream closes the response and the client that produced it.
    """

    def __init__(self, client: httpx.Client, response: httpx.Response) -> None:
        super().__init__()
        self._client = client
        self._response = response
        self._chunks: Iterator[bytes] = response.iter_bytes()
        self._pending = b""

    @property
    def url(self) -> str:
        return str(self._response.url)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            except httpx.HTTPError as exc:
                raise MediaError(f"Error reading {self.url}: {exc}") from exc
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            try:
                self._response.close()
            finally:
                self._client.close()
        super().close()


class StreamResolver:
    """Opens a readable byte stream for a media path of a known kind.

    The caller owns the returned stream and must close it.
    """

    def __init__(self, context: "MediaContext") -> None:
        self.context = context

    def open(self, path: str, kind: Optional[SourceKind] = None) -> BinaryIO:
        if kind is None:
            kind = classify(self.context, path)

        if kind is SourceKind.ASSET:
            return open_asset(self.context, path)

        if kind is SourceKind.REMOTE_ASSET:
            self.context.permissions.assert_permission(READ_EXTERNAL_STORAGE)
            return self._open_file(str(self.context.repl_asset_path(path)))

        if kind is SourceKind.REMOVABLE_STORAGE:
            self.context.permissions.assert_permission(READ_EXTERNAL_STORAGE)
            return self._open_file(path)

        if kind is SourceKind.FILE_URL:
            self.require_permission_if_external(path)
            return self._open_file(file_url_to_path(path))

        if kind is SourceKind.REMOTE_URL:
            self.require_permission_if_external(path)
            return self.open_url(path)

        if kind is SourceKind.CONTENT_HANDLE:
            return self.context.content.open_stream(path)

        if kind is SourceKind.CONTACT_PHOTO:
            stream = self.context.content.open_contact_photo(path)
            if stream is None:
                raise MediaError(f"Unable to open contact photo {path}.")
            return stream

        raise MediaError(f"Unable to open media {path}.")

    def require_permission_if_external(self, path: str) -> None:
        if is_external_file_url(self.context, path):
            self.context.permissions.assert_permission(READ_EXTERNAL_STORAGE)

    def open_url(self, url: str, hops: int = 0) -> BinaryIO:
        scheme = _scheme(url)
        if scheme not in _HTTP_SCHEMES:
            try:
                return urllib.request.urlopen(url, timeout=self.context.http_timeout)
            except ValueError as exc:
                raise MediaError(f"Unable to open media {url}: {exc}") from exc
        return self._open_http(url, hops)

    def _open_http(self, url: str, hops: int) -> BinaryIO:
        client = httpx.Client(
            follow_redirects=False,
            timeout=self.context.http_timeout,
            transport=self.context.http_transport,
            headers={"User-Agent": self.context.user_agent},
        )
        try:
            response = client.send(client.build_request("GET", url), stream=True)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            client.close()
            raise MediaError(f"Unable to open media {url}: {exc}") from exc

        if 300 <= response.status_code <= 399:
            location = response.headers.get("Location")
            response.close()
            client.close()
            if not location:
                raise MediaError(f"Redirect from {url} has no Location header")
            try:
                target = urljoin(url, location)
            except ValueError as exc:
                raise MediaError(f"Invalid redirect from {url} to {location}") from exc
            return self._follow_redirect(url, target, hops)

        if response.status_code >= 400:
            response.close()
            client.close()
            raise MediaError(f"Unable to open media {url}: HTTP {response.status_code}")

        return HttpResponseStream(client, response)

    def _follow_redirect(self, url: str, location: str, hops: int) -> BinaryIO:
        if hops >= self.context.max_redirects:
            raise MediaError(f"Too many redirects while opening {url}")
        if _scheme(location) not in _HTTP_SCHEMES:
            raise MediaError(f"Refusing redirect from {url} to {location}")
        logger.debug("Redirecting to %s", location)
        return self.open_url(location, hops + 1)

    def _open_file(self, path: str) -> BinaryIO:
        try:
            return open(path, "rb")
        except IsADirectoryError as exc:
            raise MediaError(f"Unable to open media {path}: is a directory") from exc


def open_media(context: "MediaContext", path: str) -> BinaryIO:
    return StreamResolver(context).open(path)


def _scheme(url: str) -> str:
    try:
        return urlparse(url).scheme.lower()
    except ValueError as exc:
        raise MediaError(f"Unable to open media {url}: {exc}") from exc
