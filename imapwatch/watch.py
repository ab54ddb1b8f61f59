#!/usr/bin/python

# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

"""Watch a mailbox from the command line, logging every new message.

    python -m imapwatch.watch -f watch.ini
    python -m imapwatch.watch -H imap.example.com -P 993 -u someuser
"""

import argparse
import logging
import signal
import sys
from getpass import getpass
from typing import List, Optional

from .config import ConnectionConfig, parse_config_file
from .exceptions import ConfigError
from .listener import IMAPListener


def command_line(argv: Optional[List[str]] = None) -> ConnectionConfig:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "-H", "--host", dest="host", action="store", help="IMAP host connect to"
    )
    parser.add_argument(
        "-u",
        "--username",
        dest="username",
        action="store",
        help="Username to login with",
    )
    parser.add_argument(
        "-p",
        "--password",
        dest="password",
        action="store",
        help="Password to login with",
    )
    parser.add_argument(
        "-P",
        "--port",
        dest="port",
        action="store",
        type=int,
        default=None,
        help="IMAP port to use",
    )
    parser.add_argument(
        "--protocol",
        dest="protocol",
        action="store",
        choices=["imaps", "imap"],
        default=None,
        help="imaps for TLS (default), imap for STARTTLS",
    )
    parser.add_argument(
        "--folder",
        dest="folder",
        action="store",
        default=None,
        help="Folder to watch (default INBOX)",
    )
    parser.add_argument(
        "-f",
        "--file",
        dest="file",
        action="store",
        default=None,
        help="Config file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        action="store_true",
        default=False,
        help="Log protocol details",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.file:
        if (
            args.host
            or args.username
            or args.password
            or args.port
            or args.protocol
            or args.folder
        ):
            parser.error("If -f/--file is given no other options can be used")
        # Use the options in the config file
        return parse_config_file(args.file)

    if not args.host:
        parser.error("-H/--host is required")
    protocol = args.protocol or "imaps"
    port = args.port
    if port is None:
        port = 993 if protocol == "imaps" else 143
    username = args.username or input("username: ")
    password = args.password or getpass("password: ")

    return ConnectionConfig(
        host=args.host,
        port=port,
        username=username,
        password=password,
        protocol=protocol,
        folder=args.folder or "INBOX",
    )


def main(argv: Optional[List[str]] = None) -> int:
    try:
        config = command_line(argv)
    except ConfigError as e:
        print("Invalid configuration: %s" % e, file=sys.stderr)
        return 2

    listener = IMAPListener(config)

    def terminate(signum, frame):
        listener.stop()

    signal.signal(signal.SIGTERM, terminate)
    listener.start()
    try:
        while not listener.join(timeout=1):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        listener.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
