# Copyright Red Hat
#
# stordiff/client/__init__.py - Storage differ clients
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Storage clients.

Each public module in this package provides one or more ``StorageClient``
subclasses that are discovered at runtime by ``load_clients()`` and
selected by URL scheme in ``new_client()``.
"""
from ._url import (
    LOCAL_SCHEMES,
    REMOTE_SEPARATOR,
    StorageURL,
    parse_url,
    url_join_path,
)
from ._client import EntryAttributes, EntryType, StorageClient
from ._loader import load_clients, new_client, url_to_stat

__all__ = [
    "LOCAL_SCHEMES",
    "REMOTE_SEPARATOR",
    "EntryAttributes",
    "EntryType",
    "StorageClient",
    "StorageURL",
    "load_clients",
    "new_client",
    "parse_url",
    "url_join_path",
    "url_to_stat",
]
