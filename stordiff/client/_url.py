# Copyright Red Hat
#
# stordiff/client/_url.py - Storage differ URL model
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Storage URL parsing and joining.

A storage URL is either a local path (``/srv/data``, ``./backup``,
``file:///srv/data``) or a remote object storage URL
(``s3://bucket/prefix`` or ``https://host:port/bucket/prefix``).
"""
from dataclasses import dataclass
from urllib.parse import urlsplit
import logging
import os

from stordiff import StordiffPathError

_log = logging.getLogger(__name__)

_log_debug = _log.debug

#: Separator used by remote (object storage) URLs
REMOTE_SEPARATOR = "/"

#: Schemes that address the local file system
LOCAL_SCHEMES = ("", "file")


@dataclass(frozen=True)
class StorageURL:
    """
    A parsed storage URL.
    """

    #: URL scheme: "" for plain local paths
    scheme: str
    #: Host (and port) for remote URLs: the bucket name for "s3" URLs
    host: str
    #: Path component: a file system path for local URLs
    path: str

    def __str__(self) -> str:
        if self.scheme == "":
            return self.path
        return f"{self.scheme}://{self.host}{self.path}"

    @property
    def is_local(self) -> bool:
        """
        ``True`` if this URL addresses the local file system.
        """
        return self.scheme in LOCAL_SCHEMES

    @property
    def separator(self) -> str:
        """
        The path separator for this URL.
        """
        return os.sep if self.is_local else REMOTE_SEPARATOR

    @property
    def basename(self) -> str:
        """
        The last non-empty path segment of this URL, or the empty string if
        the path has none.
        """
        return self.path.rstrip(self.separator).rsplit(self.separator, 1)[-1]

    def as_directory(self) -> "StorageURL":
        """
        Return a copy of this URL with a path that ends in its separator.

        :returns: A directory form of this URL.
        :rtype: ``StorageURL``
        """
        if self.path.endswith(self.separator):
            return self
        return StorageURL(self.scheme, self.host, self.path + self.separator)

    def dir_prefix(self) -> str:
        """
        Return the string form of this URL truncated after its last
        separator. For a directory URL in directory form this is the URL
        itself; for an object URL it is the URL of the containing directory.

        :returns: The truncated URL string.
        :rtype: ``str``
        """
        url = str(self)
        return url[: url.rfind(self.separator) + 1]

    def join(self, relative: str) -> "StorageURL":
        """
        Join the relative path ``relative`` onto this URL.

        :param relative: A relative path using "/" as the separator.
        :type relative: ``str``
        :returns: The joined URL.
        :rtype: ``StorageURL``
        """
        if not relative:
            return self
        sep = self.separator
        relative = relative.replace(REMOTE_SEPARATOR, sep).lstrip(sep)
        if not self.path:
            path = sep + relative
        elif self.path.endswith(sep):
            path = self.path + relative
        else:
            path = self.path + sep + relative
        return StorageURL(self.scheme, self.host, path)


def parse_url(url: str) -> StorageURL:
    """
    Parse the string ``url`` into a ``StorageURL``.

    :param url: The URL or local path to parse.
    :type url: ``str``
    :returns: The parsed URL.
    :rtype: ``StorageURL``
    :raises StordiffPathError: If ``url`` is empty or malformed.
    """
    if isinstance(url, StorageURL):
        return url

    if not url:
        raise StordiffPathError("Empty URL")

    if "://" not in url:
        return StorageURL("", "", url)

    try:
        parts = urlsplit(url)
    except ValueError as err:
        raise StordiffPathError(f"Malformed URL '{url}': {err}") from err

    scheme = parts.scheme.lower()
    if scheme == "file":
        if parts.netloc not in ("", "localhost"):
            raise StordiffPathError(f"Remote host in file URL '{url}'")
        if not parts.path:
            raise StordiffPathError(f"Empty path in file URL '{url}'")
        return StorageURL("file", "", parts.path)

    if not parts.netloc:
        raise StordiffPathError(f"Missing host in URL '{url}'")
    if parts.query or parts.fragment:
        raise StordiffPathError(f"Unsupported query or fragment in URL '{url}'")

    parsed = StorageURL(scheme, parts.netloc, parts.path)
    _log_debug("Parsed URL '%s' as %r", url, parsed)
    return parsed


def url_join_path(base, relative: str) -> str:
    """
    Join the relative path ``relative`` onto the URL ``base``.

    :param base: The base URL string or ``StorageURL``.
    :param relative: The relative path to append.
    :type relative: ``str``
    :returns: The joined URL string.
    :rtype: ``str``
    :raises StordiffPathError: If ``base`` cannot be parsed or ``relative``
                               is itself a URL.
    """
    base_url = parse_url(base)
    if "://" in relative:
        raise StordiffPathError(
            f"Cannot join URL '{relative}' onto '{base_url}': not a relative path"
        )
    return str(base_url.join(relative))


__all__ = [
    "LOCAL_SCHEMES",
    "REMOTE_SEPARATOR",
    "StorageURL",
    "parse_url",
    "url_join_path",
]
