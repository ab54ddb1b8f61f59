#!/usr/bin/env python3

# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

from os import path
from typing import Dict

from setuptools import setup  # type: ignore[import-untyped]

# Read version info
here = path.dirname(__file__)
version_file = path.join(here, "imapwatch", "version.py")
info: Dict[str, str] = {}
exec(open(version_file).read(), {}, info)

desc = """\
IMAPWatch keeps an IMAP IDLE connection to a mailbox open and reports
newly arrived messages as they come in.

Features:
    * A single background thread per watched mailbox.
    * Lost connections are detected and reopened after a fixed delay.
    * The folder is opened read-only, nothing on the server is changed.
    * The plain text body of each new message is extracted for you.
    * Stopping is prompt and never leaves a connection open.

Python versions 3.7 and later are supported.
"""

install_deps = ["IMAPClient>=3.0", "cachetools"]
test_deps = ["pytest"]

setup(
    name="IMAPWatch",
    description="Watch an IMAP mailbox for new messages using IDLE",
    keywords="imap idle email mail",
    version=info["version"],
    maintainer=info["maintainer"],
    maintainer_email=info["maintainer_email"],
    author=info["author"],
    author_email=info["author_email"],
    license="3-Clause BSD License",
    packages=["imapwatch"],
    install_requires=install_deps,
    extras_require={"test": test_deps},
    long_description=desc,
    python_requires=">=3.7.0",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
        "Natural Language :: English",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Communications :: Email :: Post-Office :: IMAP",
        "Topic :: Internet",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Networking",
    ],
)
