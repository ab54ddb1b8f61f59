# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

from .config import ConnectionConfig, parse_config_file  # noqa: F401
from .connector import connect, Session  # noqa: F401
from .decode import decode_message, DecodedMessage  # noqa: F401
from .exceptions import *  # noqa: F401,F403
from .listener import IMAPListener, ListenerState, log_message  # noqa: F401
from .version import author as __author__  # noqa: F401
from .version import version as __version__  # noqa: F401
from .version import version_info  # noqa: F401
