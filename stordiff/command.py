# Copyright Red Hat
#
# stordiff/command.py - Storage differ command interface
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``stordiff.command`` module provides both the stordiff command line
interface infrastructure, and a simple procedural interface to the
``stordiff`` library modules.

The procedural interface is used by the ``stordiff`` command line tool,
and may be used by application programs, or interactively in the
Python shell by users who do not require all the features present
in the stordiff object API.
"""
from argparse import ArgumentParser
from dataclasses import replace
from os.path import basename
from typing import Optional
import logging
import sys

from stordiff import (
    StordiffError,
    STORDIFF_DEBUG_DIFF,
    STORDIFF_DEBUG_CLIENT,
    STORDIFF_DEBUG_COMMAND,
    STORDIFF_DEBUG_CONFIG,
    STORDIFF_DEBUG_ALL,
    STORDIFF_SUBSYSTEM_COMMAND,
    SubsystemFilter,
    set_debug_mask,
    ProgressAwareHandler,
    __version__,
)
from stordiff.client import StorageURL, new_client
from stordiff.config import StordiffConfig
from stordiff.diff import DiffOptions, DiffStream, Differ
from stordiff.progress import TermControl

DIFF_CMD = "diff"
MB_CMD = "mb"

COLOR_MODES = ["auto", "always", "never"]

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": STORDIFF_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None


def diff_locations(
    first: str,
    second: str,
    options: Optional[DiffOptions] = None,
    config: Optional[StordiffConfig] = None,
    term_control: Optional[TermControl] = None,
) -> DiffStream:
    """
    Compare two storage locations.

    Aliases in ``first`` and ``second`` are expanded using ``config``.

    :param first: The first (source) URL, path or alias.
    :type first: ``str``
    :param second: The second (target) URL, path or alias.
    :type second: ``str``
    :param options: Comparison options.
    :type options: ``Optional[DiffOptions]``
    :param config: Configuration for alias expansion and credentials.
    :type config: ``Optional[StordiffConfig]``
    :param term_control: Terminal control for the progress indicator.
    :type term_control: ``Optional[TermControl]``
    :returns: The stream of diff records.
    :rtype: ``DiffStream``
    """
    config = config or StordiffConfig()
    first = config.expand_alias(first)
    second = config.expand_alias(second)
    _log_debug_command("Comparing '%s' with '%s'", first, second)
    differ = Differ(options=options, config=config, term_control=term_control)
    return differ.compare(first, second)


def make_bucket(target: str, config: Optional[StordiffConfig] = None) -> StorageURL:
    """
    Create the bucket or local directory named by ``target``.

    :param target: The URL, path or alias to create.
    :type target: ``str``
    :param config: Configuration for alias expansion and credentials.
    :type config: ``Optional[StordiffConfig]``
    :returns: The URL of the new bucket.
    :rtype: ``StorageURL``
    :raises StordiffExistsError: If the bucket already exists.
    """
    config = config or StordiffConfig()
    target = config.expand_alias(target)
    client = new_client(target, config=config)
    client.make_bucket()
    _log_debug_command("Created bucket for '%s'", client.url)
    return client.url


def _diff_cmd(cmd_args):
    """
    Diff command handler.

    Compare two storage locations and print each difference found.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    options = DiffOptions.from_cmd_args(cmd_args)
    if cmd_args.json:
        options = replace(options, quiet=True)

    term_control = TermControl(color=cmd_args.color)
    # Progress is drawn on stderr, records are printed to stdout.
    progress_control = TermControl(term_stream=sys.stderr, color=cmd_args.color)

    status = 0
    with diff_locations(
        cmd_args.first,
        cmd_args.second,
        options=options,
        config=cmd_args.stordiff_config,
        term_control=progress_control,
    ) as stream:
        for record in stream:
            if record.is_error:
                status = 1
                _log_error("%s", record.fatal_message())
                if cmd_args.json:
                    print(record.json())
                continue
            print(record.json() if cmd_args.json else record.render(term_control))
    return status


def _mb_cmd(cmd_args):
    """
    Make bucket command handler.

    Create each bucket or local directory named on the command line.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    for target in cmd_args.targets:
        try:
            url = make_bucket(target, config=cmd_args.stordiff_config)
        except StordiffError as err:
            _log_error("Failed to create bucket for URL '%s': %s", target, err)
            return 1
        print(f"Bucket created successfully: {url}")
    return 0


def setup_logging(cmd_args):
    """
    Set up stordiff logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if cmd_args.verbose and cmd_args.verbose > 1:
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    stordiff_log = logging.getLogger("stordiff")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    stordiff_log.setLevel(level)
    if stordiff_log.hasHandlers():
        stordiff_log.handlers.clear()

    # Subsystem log filtering
    _stordiff_subsystem_filter = SubsystemFilter("stordiff")

    # Main console handler
    _CONSOLE_HANDLER = ProgressAwareHandler()

    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_stordiff_subsystem_filter)

    stordiff_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down stordiff logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "diff": STORDIFF_DEBUG_DIFF,
        "client": STORDIFF_DEBUG_CLIENT,
        "command": STORDIFF_DEBUG_COMMAND,
        "config": STORDIFF_DEBUG_CONFIG,
        "all": STORDIFF_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _add_diff_subparser(cmd_subparser):
    diff_parser = cmd_subparser.add_parser(
        DIFF_CMD,
        help="Compare two storage locations by type and size",
    )
    diff_parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Compare all descendants rather than only immediate children",
    )
    diff_parser.add_argument(
        "--symmetric",
        action="store_true",
        help="Also report entries that exist only in SECOND",
    )
    diff_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Report differences as JSON lines",
    )
    diff_parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not display progress while scanning",
    )
    diff_parser.add_argument(
        "--color",
        type=str,
        default="auto",
        choices=COLOR_MODES,
        help="Control the use of color in output",
    )
    diff_parser.add_argument(
        "first",
        metavar="FIRST",
        type=str,
        help="The first (source) URL, path or alias",
    )
    diff_parser.add_argument(
        "second",
        metavar="SECOND",
        type=str,
        help="The second (target) URL, path or alias",
    )
    diff_parser.set_defaults(func=_diff_cmd)


def _add_mb_subparser(cmd_subparser):
    mb_parser = cmd_subparser.add_parser(
        MB_CMD,
        help="Make a bucket or folder",
    )
    mb_parser.add_argument(
        "targets",
        metavar="TARGET",
        type=str,
        nargs="+",
        help="A bucket URL, local directory or alias to create",
    )
    mb_parser.set_defaults(func=_mb_cmd)


def main(args):
    """
    Main entry point for stordiff.
    """
    parser = ArgumentParser(description="Storage Differ", prog=basename(args[0]))

    # Global arguments
    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of stordiff",
        version=__version__,
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="CONFIG",
        type=str,
        help="Path to an alternate configuration file",
    )
    # Subparser for command
    cmd_subparser = parser.add_subparsers(dest="command", help="Command")

    _add_diff_subparser(cmd_subparser)

    _add_mb_subparser(cmd_subparser)

    cmd_args = parser.parse_args(args[1:])

    status = 1

    try:
        set_debug(cmd_args.debug)
    except ValueError as err:
        print(err)
        parser.print_help()
        return status

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    if "func" not in cmd_args:
        parser.print_help()
        shutdown_logging()
        return status

    try:
        cmd_args.stordiff_config = StordiffConfig.from_file(cmd_args.config)
    except StordiffError as err:
        _log_error("%s", err)
        shutdown_logging()
        return status

    if cmd_args.debug:
        status = cmd_args.func(cmd_args)
    else:
        try:
            status = cmd_args.func(cmd_args)
        # pylint: disable=broad-except
        except KeyboardInterrupt:  # pragma: no cover
            _log_info("Exiting on user cancel")
        except Exception as err:
            _log_error("Command failed: %s", err)

    shutdown_logging()
    return status


__all__ = [
    "diff_locations",
    "main",
    "make_bucket",
]

# vim: set et ts=4 sw=4 :
