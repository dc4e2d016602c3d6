import hashlib
import hmac
import logging
import os
import time
from typing import Optional
from urllib.parse import quote, urlencode

from medstore.config import settings

log = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class LocalObjectStorage:
    """
    Key/value object storage on the local filesystem.

    Documents are never exposed by a permanent link: readers get a signed URL
    carrying an expiry timestamp and an HMAC over (key, expiry), checked by
    `verify` before the bytes are served.
    """

    def __init__(
        self,
        root: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.root = os.path.abspath(root or settings.STORAGE_DIR)
        self.secret = (secret or settings.SECRET_KEY).encode("utf-8")
        self.base_url = (base_url or settings.PUBLIC_BASE_URL).rstrip("/")

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if not path.startswith(self.root + os.sep):
            raise StorageError(f"Invalid object key: {key!r}")
        return path

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        path = self._path(key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as fh:
                fh.write(data)
        except OSError as e:
            raise StorageError(f"Could not store {key}: {e}") from e
        log.debug("put(): key=%s bytes=%d type=%s", key, len(data), content_type)
        return key

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StorageError(f"Could not read {key}: {e}") from e

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def delete(self, key: str):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not delete {key}: {e}") from e

    def _signature(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode("utf-8")
        return hmac.new(self.secret, message, hashlib.sha256).hexdigest()

    def signed_url(self, key: str, expires_in: Optional[int] = None) -> str:
        if expires_in is None:
            expires_in = settings.SIGNED_URL_TTL_SECONDS
        expires = int(time.time()) + int(expires_in)
        query = urlencode({"expires": expires, "signature": self._signature(key, expires)})
        return f"{self.base_url}/api/files/{quote(key)}?{query}"

    def verify(self, key: str, expires: int, signature: str, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        if int(expires) < now:
            return False
        return hmac.compare_digest(self._signature(key, int(expires)), signature or "")

    def health_check(self) -> bool:
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError:
            return False
        return os.access(self.root, os.W_OK)
