# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

import configparser
import dataclasses
import os
from typing import Any, Callable, Dict, Optional, TypeVar

from .exceptions import ConfigError

# Maps the protocol name to whether TLS is used from the first byte.
# Plain "imap" connections are always upgraded with STARTTLS.
PROTOCOLS = {
    "imaps": True,
    "imap": False,
}


def getenv(name: str, default: Optional[str]) -> Optional[str]:
    return os.environ.get("imapwatch_" + name, default)


@dataclasses.dataclass(frozen=True)
class ConnectionConfig:
    """Connection details for the mailbox being watched.

    *protocol* is either ``"imaps"`` (TLS from the start, usually on
    port 993) or ``"imap"`` (plain connection upgraded with STARTTLS,
    usually on port 143). Unencrypted sessions are not supported.

    Instances are validated when created; invalid values raise
    :py:exc:`imapwatch.exceptions.ConfigError`.
    """

    host: str
    port: int
    username: str
    password: str = dataclasses.field(repr=False)
    protocol: str
    folder: str = "INBOX"
    timeout: Optional[float] = None
    ssl_check_hostname: bool = True
    ssl_verify_cert: bool = True
    ssl_ca_file: Optional[str] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        for name in ("host", "username", "password", "folder"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ConfigError("missing %s" % name)

        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigError("port must be an integer, got %r" % (self.port,))
        if not 1 <= self.port <= 65535:
            raise ConfigError("port out of range: %d" % self.port)

        if not isinstance(self.protocol, str) or self.protocol.lower() not in PROTOCOLS:
            raise ConfigError(
                "unsupported protocol %r (expected one of: %s)"
                % (self.protocol, ", ".join(sorted(PROTOCOLS)))
            )

        if self.timeout is not None:
            if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)):
                raise ConfigError("timeout must be a number, got %r" % (self.timeout,))
            if self.timeout <= 0:
                raise ConfigError("timeout must be positive, got %r" % (self.timeout,))

        if self.ssl_ca_file and not os.path.isfile(self.ssl_ca_file):
            raise ConfigError("CA file not found: %s" % self.ssl_ca_file)

    @property
    def implicit_tls(self) -> bool:
        return PROTOCOLS[self.protocol.lower()]


def get_config_defaults() -> Dict[str, Any]:
    return {
        "username": getenv("username", None),
        "password": getenv("password", None),
        "folder": "INBOX",
        "timeout": None,
        "ssl_check_hostname": True,
        "ssl_verify_cert": True,
        "ssl_ca_file": None,
    }


def get_string_config_defaults() -> Dict[str, str]:
    out = {}
    for k, v in get_config_defaults().items():
        if v is True:
            v = "true"
        elif v is False:
            v = "false"
        elif not v:
            v = ""
        out[k] = v
    return out


def parse_config_file(filename: str, section: str = "DEFAULT") -> ConnectionConfig:
    """Parse an INI file containing IMAP connection details.

    Example::

        [DEFAULT]
        host = imap.example.com
        port = 993
        protocol = imaps
        username = someuser
        password = secret

    The username and password may instead come from the
    ``imapwatch_username`` and ``imapwatch_password`` environment
    variables.
    """
    parser = configparser.ConfigParser(get_string_config_defaults())
    if not parser.read(filename):
        raise ConfigError("could not read config file %r" % filename)
    if section != "DEFAULT" and not parser.has_section(section):
        raise ConfigError("no section %r in %r" % (section, filename))

    try:
        return _read_config_section(parser, section)
    except (configparser.Error, ValueError) as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError("invalid config file %r: %s" % (filename, e)) from e


T = TypeVar("T")


def _read_config_section(
    parser: configparser.ConfigParser, section: str
) -> ConnectionConfig:
    def get(name: str) -> str:
        try:
            return parser.get(section, name)
        except configparser.NoOptionError:
            raise ConfigError("missing %s" % name)

    def getboolean(name: str) -> bool:
        return parser.getboolean(section, name)

    def get_allowing_none(name: str, typefunc: Callable[[str], T]) -> Optional[T]:
        try:
            v = parser.get(section, name)
        except configparser.NoOptionError:
            return None
        if not v:
            return None
        return typefunc(v)

    port = get_allowing_none("port", int)
    if port is None:
        raise ConfigError("missing port")

    ssl_ca_file = get("ssl_ca_file")
    if ssl_ca_file:
        ssl_ca_file = os.path.expanduser(ssl_ca_file)

    return ConnectionConfig(
        host=get("host"),
        port=port,
        username=get("username"),
        password=get("password"),
        protocol=get("protocol"),
        folder=get("folder"),
        timeout=get_allowing_none("timeout", float),
        ssl_check_hostname=getboolean("ssl_check_hostname"),
        ssl_verify_cert=getboolean("ssl_verify_cert"),
        ssl_ca_file=ssl_ca_file or None,
    )
