# Copyright Red Hat
#
# stordiff/config.py - Storage differ configuration
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Configuration file support: URL aliases and per-host credentials.
"""
from configparser import ConfigParser, Error as ConfigParserError
from dataclasses import dataclass, field
from os.path import exists, expanduser, join
from typing import Dict, Optional
import logging
import os

from stordiff import StordiffConfigError, STORDIFF_SUBSYSTEM_CONFIG

from .client import REMOTE_SEPARATOR

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_config(msg, *args, **kwargs):
    """A wrapper for config subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": STORDIFF_SUBSYSTEM_CONFIG}, **kwargs)


#: Environment variable naming an alternate configuration file
STORDIFF_CONFIG_ENV = "STORDIFF_CONFIG"

#: Default configuration file location
DEFAULT_CONFIG_PATH = join("~", ".config", "stordiff", "stordiff.conf")

_CFG_ALIASES = "Aliases"
_CFG_HOST_PREFIX = "Host "
_CFG_ACCESS_KEY = "AccessKey"
_CFG_SECRET_KEY = "SecretKey"
_CFG_REGION = "Region"

# Arguments starting with one of these are never treated as aliases.
_NON_ALIAS_PREFIXES = ("/", ".", "~")


@dataclass(frozen=True)
class HostConfig:
    """
    Credentials and region for one object storage host.
    """

    #: Access key ID
    access_key: Optional[str] = None
    #: Secret access key
    secret_key: Optional[str] = None
    #: Region name
    region: Optional[str] = None


def default_config_path() -> str:
    """
    Return the configuration file path: ``$STORDIFF_CONFIG`` if set,
    otherwise ``~/.config/stordiff/stordiff.conf``.
    """
    return expanduser(os.environ.get(STORDIFF_CONFIG_ENV) or DEFAULT_CONFIG_PATH)


@dataclass(frozen=True)
class StordiffConfig:
    """
    Stordiff configuration.
    """

    #: Map of alias names to URLs
    aliases: Dict[str, str] = field(default_factory=dict)
    #: Map of host names (with optional port) to ``HostConfig``
    hosts: Dict[str, HostConfig] = field(default_factory=dict)

    @classmethod
    def from_file(cls, config_file: Optional[str] = None) -> "StordiffConfig":
        """
        Load ``StordiffConfig`` from an INI-style configuration file located
        at ``config_file``. A missing file yields the default configuration.

        :param config_file: path to stordiff.conf, or ``None`` for the
                            default location.
        :type config_file: ``Optional[str]``.
        :returns: A ``StordiffConfig`` instance initialised from
                  ``config_file``.
        :rtype: ``StordiffConfig``
        :raises StordiffConfigError: If the file cannot be parsed.
        """
        config_file = config_file or default_config_path()
        if not exists(config_file):
            _log_debug_config("No configuration file at '%s'", config_file)
            return StordiffConfig()

        _log_debug_config("Loading configuration from '%s'", config_file)
        # Keep option names as written: alias names are case sensitive.
        cfg = ConfigParser(interpolation=None)
        cfg.optionxform = str
        try:
            cfg.read([config_file])
        except ConfigParserError as err:
            raise StordiffConfigError(
                f"Error parsing configuration file '{config_file}': {err}"
            ) from err

        aliases = {}
        if cfg.has_section(_CFG_ALIASES):
            for alias, url in cfg[_CFG_ALIASES].items():
                if REMOTE_SEPARATOR in alias or not url.strip():
                    raise StordiffConfigError(
                        f"Invalid alias '{alias}' in '{config_file}'"
                    )
                aliases[alias] = url.strip().rstrip(REMOTE_SEPARATOR)

        hosts = {}
        for section in cfg.sections():
            if not section.startswith(_CFG_HOST_PREFIX):
                continue
            host = section[len(_CFG_HOST_PREFIX) :].strip()
            if not host:
                raise StordiffConfigError(
                    f"Missing host name in section '[{section}]' of '{config_file}'"
                )
            sect = cfg[section]
            hosts[host] = HostConfig(
                access_key=sect.get(_CFG_ACCESS_KEY),
                secret_key=sect.get(_CFG_SECRET_KEY),
                region=sect.get(_CFG_REGION),
            )

        _log_debug_config(
            "Loaded %d aliases and %d hosts from '%s'",
            len(aliases),
            len(hosts),
            config_file,
        )
        return StordiffConfig(aliases=aliases, hosts=hosts)

    def expand_alias(self, arg: str) -> str:
        """
        Expand a leading alias in ``arg``.

        ``alias`` and ``alias/rest`` expand to the aliased URL (joined with
        ``rest``). Arguments that carry a URL scheme or start with "/", "."
        or "~" are returned unchanged, except that a leading "~" is expanded
        to the user's home directory.

        :param arg: A command line URL argument.
        :type arg: ``str``
        :returns: The expanded URL.
        :rtype: ``str``
        """
        if "://" in arg or arg.startswith(_NON_ALIAS_PREFIXES):
            return expanduser(arg) if arg.startswith("~") else arg
        alias, sep, rest = arg.partition(REMOTE_SEPARATOR)
        if alias not in self.aliases:
            return arg
        url = self.aliases[alias]
        expanded = url + sep + rest
        _log_debug_config("Expanded alias '%s' to '%s'", arg, expanded)
        return expanded

    def host_config(self, host: str) -> Optional[HostConfig]:
        """
        Return the ``HostConfig`` for ``host`` or ``None`` if the host has
        no configuration section.

        :param host: The host name, optionally with ":port".
        :type host: ``str``
        :rtype: ``Optional[HostConfig]``
        """
        if host in self.hosts:
            return self.hosts[host]
        return self.hosts.get(host.split(":", 1)[0])


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "HostConfig",
    "STORDIFF_CONFIG_ENV",
    "StordiffConfig",
    "default_config_path",
]
