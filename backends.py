import logging
import os

import requests
from requests.auth import HTTPBasicAuth

logger = logging.getLogger("vcf4.backends")


class BackendError(Exception):
    def __init__(self, message, response=None):
        super().__init__(message)
        self.response = response


class CardFileNotFound(BackendError):
    pass


class CardFileReadError(BackendError):
    pass


class TargetExistsError(BackendError):
    pass


class FileBackend:
    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def read(self, path: str) -> str:
        if not os.path.exists(path):
            raise CardFileNotFound(f"File does not exist: {path}")
        try:
            with open(path, "r", encoding=self.encoding, newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CardFileReadError(f"Unable to read {path}: {e}")

    def write(self, path: str, text: str, overwrite: bool = False) -> int:
        """Write `text` to `path`, return the number of bytes written."""
        if not path:
            raise BackendError("No file path to save to")
        if os.path.exists(path) and not overwrite:
            raise TargetExistsError(f"File already exists: {path}")
        data = text.encode(self.encoding)
        with open(path, "wb") as f:
            f.write(data)
        logger.info("Wrote %d bytes to %s", len(data), path)
        return len(data)


class HttpBackend:
    """Reads and writes vCard resources on a WebDAV or CardDAV server."""

    def __init__(self, base_url: str, user: str = None, pwd: str = None, timeout=30):
        self.base_url = base_url.rstrip("/")
        self.auth = HTTPBasicAuth(user, pwd) if user else None
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def read(self, path: str) -> str:
        try:
            res = requests.get(self.url(path), auth=self.auth, timeout=self.timeout)
        except requests.RequestException as e:
            raise CardFileReadError(e)
        if res.status_code == 404:
            raise CardFileNotFound(f"HTTP 404: {path}", res)
        if not res.ok:
            raise CardFileReadError(f"HTTP {res.status_code}: {res.text}", res)
        res.encoding = res.encoding or "utf-8"
        return res.text

    def write(self, path: str, text: str, overwrite: bool = False) -> int:
        data = text.encode("utf-8")
        headers = {"Content-Type": "text/vcard;charset=utf-8"}
        if not overwrite:
            headers["If-None-Match"] = "*"
        try:
            res = requests.put(
                self.url(path),
                data=data,
                headers=headers,
                auth=self.auth,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BackendError(e)
        if res.status_code == 412:
            raise TargetExistsError(f"Resource already exists: {path}", res)
        if not res.ok:
            raise BackendError(f"HTTP {res.status_code}: {res.text}", res)
        logger.info("Uploaded %d bytes to %s", len(data), self.url(path))
        return len(data)
