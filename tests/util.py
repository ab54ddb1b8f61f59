# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

from imapwatch.config import ConnectionConfig


def make_config(**kwargs):
    params = dict(
        host="imap.example.com",
        port=993,
        username="someuser",
        password="secret",
        protocol="imaps",
    )
    params.update(kwargs)
    return ConnectionConfig(**params)
