# Copyright Red Hat
#
# stordiff/client/_client.py - Storage differ client base classes
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Storage client abstraction.
"""
from typing import ClassVar, Iterator, Optional, Tuple, TYPE_CHECKING
from dataclasses import dataclass
from enum import Enum
import logging

from ._url import StorageURL

if TYPE_CHECKING:
    from stordiff.config import StordiffConfig


class EntryType(Enum):
    """
    Enum for the storage entry types that take part in comparisons.
    """

    REGULAR = "regular"
    DIRECTORY = "directory"
    #: Symbolic links, devices, sockets, FIFOs and anything else.
    OTHER = "other"


@dataclass(frozen=True)
class EntryAttributes:
    """
    The stat snapshot used to compare two storage entries. ``size`` is only
    meaningful when ``entry_type`` is ``EntryType.REGULAR``.
    """

    #: Path relative to the listed directory, or the entry's own name for
    #: the result of ``StorageClient.stat()``
    name: str
    #: Size in bytes
    size: int
    #: The entry type
    entry_type: EntryType

    @property
    def is_regular(self) -> bool:
        """
        ``True`` if this entry is a regular file or object.
        """
        return self.entry_type == EntryType.REGULAR

    @property
    def is_dir(self) -> bool:
        """
        ``True`` if this entry is a directory, bucket or prefix.
        """
        return self.entry_type == EntryType.DIRECTORY

    def same_type(self, other: "EntryAttributes") -> bool:
        """
        Test whether ``other`` has the same type as this entry. Entries of
        type ``EntryType.OTHER`` never match anything.

        :param other: The entry to compare with.
        :type other: ``EntryAttributes``
        :returns: ``True`` if the types match.
        :rtype: ``bool``
        """
        if EntryType.OTHER in (self.entry_type, other.entry_type):
            return False
        return self.entry_type == other.entry_type


class StorageClient:
    """
    Abstract base class for storage clients.

    A client is bound to one URL. It can stat that URL, list the entries
    beneath it and create it as a bucket or directory.
    """

    #: Client name
    name: ClassVar[str] = "client"
    #: Client version
    version: ClassVar[str] = "0.1.0"
    #: URL schemes handled by this client class
    schemes: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, url: StorageURL, config: Optional["StordiffConfig"] = None):
        """
        Initialise a new client for ``url``.

        :param url: The URL this client operates on.
        :type url: ``StorageURL``
        :param config: Optional configuration supplying host credentials.
        :type config: ``Optional[StordiffConfig]``
        """
        self._url = url
        self.config = config
        self.logger = logging.getLogger(self.__class__.__module__)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self._url)!r})"

    @property
    def url(self) -> StorageURL:
        """
        The parsed URL this client is bound to.
        """
        return self._url

    def stat(self) -> EntryAttributes:
        """
        Return the attributes of the entry at this client's URL.

        :returns: The entry attributes.
        :rtype: ``EntryAttributes``
        :raises StordiffNotFoundError: If the entry does not exist.
        :raises StordiffPermissionError: If access is denied.
        :raises StordiffClientError: If the backend fails.
        """
        raise NotImplementedError

    def list(self, recursive: bool = False) -> Iterator[EntryAttributes]:
        """
        Generate the entries beneath this client's URL.

        Entry names are relative to the directory form of the URL and use
        "/" as the separator. Errors are raised from the iterator at the
        point they occur: entries generated before the error remain valid.

        :param recursive: List all descendants rather than only the
                          immediate children.
        :type recursive: ``bool``
        :returns: An iterator over ``EntryAttributes``.
        :rtype: ``Iterator[EntryAttributes]``
        """
        raise NotImplementedError

    def make_bucket(self):
        """
        Create the bucket or directory named by this client's URL.

        :raises StordiffExistsError: If it already exists.
        """
        raise NotImplementedError


__all__ = [
    "EntryAttributes",
    "EntryType",
    "StorageClient",
]
