# Copyright Red Hat
#
# stordiff/client/local.py - Storage differ local file system client
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Local file system storage client.
"""
from typing import Iterator, List, Tuple
import errno
import stat
import os

from stordiff import (
    StordiffClientError,
    StordiffExistsError,
    StordiffNotFoundError,
    StordiffPermissionError,
    STORDIFF_SUBSYSTEM_CLIENT,
)

from ._client import EntryAttributes, EntryType, StorageClient
from ._url import REMOTE_SEPARATOR


def _mode_to_type(mode: int) -> EntryType:
    if stat.S_ISREG(mode):
        return EntryType.REGULAR
    if stat.S_ISDIR(mode):
        return EntryType.DIRECTORY
    return EntryType.OTHER


def _os_error(err: OSError, path: str):
    """
    Map an ``OSError`` raised while accessing ``path`` to a stordiff
    exception.
    """
    if err.errno == errno.ENOENT or isinstance(err, FileNotFoundError):
        return StordiffNotFoundError(f"No such file or directory: '{path}'")
    if err.errno in (errno.EACCES, errno.EPERM):
        return StordiffPermissionError(f"Permission denied: '{path}'")
    if err.errno == errno.ENOTDIR:
        return StordiffNotFoundError(f"Not a directory: '{path}'")
    return StordiffClientError(f"Error accessing '{path}': {err.strerror or err}")


class LocalClient(StorageClient):
    """
    Storage client for local file system paths. Symbolic links are never
    followed: a link is reported as ``EntryType.OTHER``.
    """

    name = "local"
    version = "0.1.0"
    schemes = ("", "file")

    def _log_debug(self, msg, *args):
        self.logger.debug(msg, *args, extra={"subsystem": STORDIFF_SUBSYSTEM_CLIENT})

    @property
    def path(self) -> str:
        """
        The local file system path for this client.
        """
        return self.url.path

    def stat(self) -> EntryAttributes:
        try:
            st = os.lstat(self.path)
        except OSError as err:
            raise _os_error(err, self.path) from err
        return EntryAttributes(self.url.basename, st.st_size, _mode_to_type(st.st_mode))

    def _scandir(self, dir_path: str) -> List[os.DirEntry]:
        try:
            with os.scandir(dir_path) as it:
                return sorted(it, key=lambda entry: entry.name)
        except OSError as err:
            raise _os_error(err, dir_path) from err

    def list(self, recursive: bool = False) -> Iterator[EntryAttributes]:
        self._log_debug("Listing '%s' (recursive=%s)", self.path, recursive)
        # Stack of (directory path, name prefix relative to self.path)
        to_visit: List[Tuple[str, str]] = [(self.path, "")]
        while to_visit:
            dir_path, prefix = to_visit.pop()
            subdirs = []
            for entry in self._scandir(dir_path):
                try:
                    st = entry.stat(follow_symlinks=False)
                except FileNotFoundError:
                    # Removed since the directory was read.
                    continue
                except OSError as err:
                    raise _os_error(err, entry.path) from err
                name = prefix + entry.name
                entry_type = _mode_to_type(st.st_mode)
                yield EntryAttributes(name, st.st_size, entry_type)
                if recursive and entry_type == EntryType.DIRECTORY:
                    subdirs.append((entry.path, name + REMOTE_SEPARATOR))
            # Reverse so that the stack visits subdirectories in name order.
            to_visit.extend(reversed(subdirs))

    def make_bucket(self):
        try:
            os.makedirs(self.path)
        except FileExistsError as err:
            raise StordiffExistsError(f"Directory '{self.path}' already exists") from err
        except OSError as err:
            raise _os_error(err, self.path) from err
        self._log_debug("Created directory '%s'", self.path)


__all__ = ["LocalClient"]
