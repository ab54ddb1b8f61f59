# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

"""
This module contains IMAPWatch's functionality related to Transport
Layer Security (TLS a.k.a. SSL).
"""

import ssl

from .config import ConnectionConfig


def create_ssl_context(config: ConnectionConfig) -> ssl.SSLContext:
    """Return the ``ssl.SSLContext`` used for both implicit TLS and
    STARTTLS connections described by *config*.
    """
    ssl_context = ssl.create_default_context(purpose=ssl.Purpose.SERVER_AUTH)
    ssl_context.check_hostname = config.ssl_check_hostname
    if not config.ssl_verify_cert:
        # check_hostname must be off before verification can be disabled
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
    if config.ssl_ca_file:
        ssl_context.load_verify_locations(cafile=config.ssl_ca_file)
    return ssl_context
