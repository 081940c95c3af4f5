# Copyright Red Hat
#
# stordiff/client/_loader.py - Storage differ client loader
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Client loader logic for stordiff.
"""
from typing import Dict, List, Optional, Tuple, Type, TYPE_CHECKING
from importlib.util import find_spec
from pathlib import Path
import importlib
import inspect
import logging

from stordiff import StordiffPathError, STORDIFF_SUBSYSTEM_CLIENT

from ._client import EntryAttributes, StorageClient
from ._url import StorageURL, parse_url

if TYPE_CHECKING:
    from stordiff.config import StordiffConfig

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_error = _log.error


def _log_debug_client(msg, *args, **kwargs):
    """A wrapper for client subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": STORDIFF_SUBSYSTEM_CLIENT}, **kwargs)


_client_classes: Optional[List[Type[StorageClient]]] = None


def _find_client_modules(path: Path):
    for file in path.glob("[a-zA-Z]*.py"):
        if not file.name.startswith("_") and file.name != "__init__.py":
            yield file.stem


def _import_client_module(fqname: str):
    if not find_spec(fqname):
        return None  # pragma: no cover
    try:
        _log_debug_client("Importing client module %s", fqname)
        return importlib.import_module(fqname)
    except (ModuleNotFoundError, ImportError, SyntaxError) as e:  # pragma: no cover
        _log_error("Error importing client %s: %s", fqname, e)
        return None


def _find_clients_in_module(module, base_class):
    members = inspect.getmembers(module, inspect.isclass)
    names_to_check = getattr(module, "__all__", [name for name, _ in members])

    return [
        cls
        for name, cls in members
        if name in names_to_check
        and not name.startswith("_")
        and issubclass(cls, base_class)
        and cls is not base_class
        and cls.__module__ == module.__name__
    ]


def load_clients(base_class=StorageClient) -> List[Type[StorageClient]]:
    """
    Attempt to load public client classes from the ``stordiff.client``
    package that are subclasses of ``base_class``.

    :returns: Client classes sorted by class name.
    :rtype: ``List[Type[StorageClient]]``
    """
    # pylint: disable=import-outside-toplevel
    import stordiff.client as client_pkg

    found_clients = []

    for path in map(Path, client_pkg.__path__):
        for module_name in _find_client_modules(path):
            fqname = f"{client_pkg.__name__}.{module_name}"
            module = _import_client_module(fqname)
            if module:
                found_clients.extend(_find_clients_in_module(module, base_class))

    return sorted(found_clients, key=lambda cls: cls.__name__)


def _scheme_map() -> Dict[str, Type[StorageClient]]:
    # pylint: disable=global-statement
    global _client_classes
    if _client_classes is None:
        _client_classes = load_clients()
    return {
        scheme: client_class
        for client_class in _client_classes
        for scheme in client_class.schemes
    }


def new_client(url, config: Optional["StordiffConfig"] = None) -> StorageClient:
    """
    Return a new client for the URL ``url``.

    :param url: The URL string or ``StorageURL`` to bind the client to.
    :param config: Optional configuration passed to the client.
    :type config: ``Optional[StordiffConfig]``
    :returns: A client for ``url``.
    :rtype: ``StorageClient``
    :raises StordiffPathError: If ``url`` cannot be parsed or no client
                               handles its scheme.
    """
    parsed: StorageURL = parse_url(url)
    client_class = _scheme_map().get(parsed.scheme)
    if client_class is None:
        raise StordiffPathError(
            f"Unsupported URL scheme '{parsed.scheme}' in '{parsed}'"
        )
    _log_debug_client("Using %s for '%s'", client_class.__name__, parsed)
    return client_class(parsed, config=config)


def url_to_stat(
    url, config: Optional["StordiffConfig"] = None
) -> Tuple[StorageClient, EntryAttributes]:
    """
    Resolve ``url`` to a client and stat it.

    :param url: The URL string or ``StorageURL`` to stat.
    :param config: Optional configuration passed to the client.
    :type config: ``Optional[StordiffConfig]``
    :returns: A ``(client, attributes)`` tuple.
    :rtype: ``Tuple[StorageClient, EntryAttributes]``
    """
    client = new_client(url, config=config)
    return client, client.stat()


__all__ = [
    "load_clients",
    "new_client",
    "url_to_stat",
]
