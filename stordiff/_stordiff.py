# Copyright Red Hat
#
# stordiff/_stordiff.py - Storage differ global definitions
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level stordiff package.
"""
from typing import Optional, TextIO, Union, TYPE_CHECKING
import logging
import weakref
import sys

if TYPE_CHECKING:
    from .progress import ThrobberBase

_log = logging.getLogger("stordiff")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Stordiff debugging subsystem mask
STORDIFF_DEBUG_DIFF = 1
STORDIFF_DEBUG_CLIENT = 2
STORDIFF_DEBUG_COMMAND = 4
STORDIFF_DEBUG_CONFIG = 8
STORDIFF_DEBUG_ALL = (
    STORDIFF_DEBUG_DIFF
    | STORDIFF_DEBUG_CLIENT
    | STORDIFF_DEBUG_COMMAND
    | STORDIFF_DEBUG_CONFIG
)

# Stordiff debugging subsystem names
STORDIFF_SUBSYSTEM_DIFF = "stordiff.diff"
STORDIFF_SUBSYSTEM_CLIENT = "stordiff.client"
STORDIFF_SUBSYSTEM_COMMAND = "stordiff.command"
STORDIFF_SUBSYSTEM_CONFIG = "stordiff.config"

_DEBUG_MASK_TO_SUBSYSTEM = {
    STORDIFF_DEBUG_DIFF: STORDIFF_SUBSYSTEM_DIFF,
    STORDIFF_DEBUG_CLIENT: STORDIFF_SUBSYSTEM_CLIENT,
    STORDIFF_DEBUG_COMMAND: STORDIFF_SUBSYSTEM_COMMAND,
    STORDIFF_DEBUG_CONFIG: STORDIFF_SUBSYSTEM_CONFIG,
}

_debug_subsystems = set()

# Registry of active throbbers: a WeakSet so that finished indicators can be
# garbage collected without an explicit unregister.
_active_progress: weakref.WeakSet = weakref.WeakSet()


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        if record.levelno != logging.DEBUG:
            return True

        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask():
    """
    Return the current debug mask for the ``stordiff`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    enabled_subsystems = set(_debug_subsystems)
    stordiff_log = logging.getLogger("stordiff")

    for handler in stordiff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    mask_map = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= mask_map.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask):
    """
    Set the debug mask for the ``stordiff`` package.

    :param mask: the logical OR of the ``STORDIFF_DEBUG_*``
                 values to log.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > STORDIFF_DEBUG_ALL:
        raise ValueError(f"Invalid stordiff debug mask: {mask}")

    enabled_subsystems = [
        subsystem_name
        for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items()
        if mask & flag
    ]

    stordiff_log = logging.getLogger("stordiff")
    for handler in stordiff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


def register_progress(progress: "ThrobberBase"):
    """Register a throbber instance for log coordination."""
    _active_progress.add(progress)
    progress.registered = True


def unregister_progress(progress: "ThrobberBase"):
    """Unregister a throbber instance."""
    _active_progress.discard(progress)
    progress.registered = False


def notify_log_output(stream: Union[TextIO, None]):
    """
    Notify throbber instances that log output occurred on stream.

    Called by ProgressAwareHandler after emitting a record.

    :param stream: The stream that received output.
    :type stream: ``TextIO``
    """
    if stream not in (sys.stdout, sys.stderr):
        return
    for progress in list(_active_progress):
        if hasattr(progress, "reset_position"):
            progress.reset_position()


class ProgressAwareHandler(logging.StreamHandler):
    """
    A logging handler that coordinates with active throbbers.

    After emitting a log record, notifies any throbber writing to the
    same stream so that the next frame is drawn below the log message
    rather than over it.
    """

    def __init__(self, stream: Optional[TextIO] = None, **kwargs):
        super().__init__(stream=stream or sys.stderr, **kwargs)

    def emit(self, record):
        try:
            msg = self.format(record)
            self.stream.write(msg + "\n")
            self.stream.flush()
            notify_log_output(self.stream)
        except Exception:  # pylint: disable=broad-exception-caught
            self.handleError(record)


#
# Stordiff exception types
#


class StordiffError(Exception):
    """
    Base class for storage differ errors.
    """


class StordiffPathError(StordiffError):
    """
    A URL or path could not be parsed or joined.
    """


class StordiffNotFoundError(StordiffError):
    """
    The requested path, object or bucket does not exist.
    """


class StordiffPermissionError(StordiffError):
    """
    Access to the requested path, object or bucket was denied.
    """


class StordiffClientError(StordiffError):
    """
    A storage backend failed to complete a request.
    """


class StordiffStateError(StordiffError):
    """
    An entry is not in the state required by an operation: e.g. an
    object expected to be a regular file is reported as a directory.
    """


class StordiffExistsError(StordiffError):
    """
    The bucket or directory to be created already exists.
    """


class StordiffArgumentError(StordiffError):
    """
    An invalid argument was passed to a stordiff API call.
    """


class StordiffConfigError(StordiffError):
    """
    The configuration file could not be parsed.
    """


__all__ = [
    "STORDIFF_DEBUG_DIFF",
    "STORDIFF_DEBUG_CLIENT",
    "STORDIFF_DEBUG_COMMAND",
    "STORDIFF_DEBUG_CONFIG",
    "STORDIFF_DEBUG_ALL",
    "STORDIFF_SUBSYSTEM_DIFF",
    "STORDIFF_SUBSYSTEM_CLIENT",
    "STORDIFF_SUBSYSTEM_COMMAND",
    "STORDIFF_SUBSYSTEM_CONFIG",
    "SubsystemFilter",
    "get_debug_mask",
    "set_debug_mask",
    "register_progress",
    "unregister_progress",
    "notify_log_output",
    "ProgressAwareHandler",
    "StordiffError",
    "StordiffPathError",
    "StordiffNotFoundError",
    "StordiffPermissionError",
    "StordiffClientError",
    "StordiffStateError",
    "StordiffExistsError",
    "StordiffArgumentError",
    "StordiffConfigError",
]
