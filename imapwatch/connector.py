# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

"""
Open authenticated IMAP sessions and wait for IDLE notifications on them.
"""

import imaplib
import selectors
import socket
import threading
import time
from logging import getLogger
from typing import Callable, List, Optional, Tuple

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from .config import ConnectionConfig
from .exceptions import ConnectError, SessionFault, StopRequested
from .tls import create_ssl_context

logger = getLogger(__name__)

IMAP_IDLE_MAX_AGE = 780  # IDLE commands are renewed every 13 minutes
IMAP_IDLE_READ_TIMEOUT = 15

# Errors meaning the server or the network let us down, as opposed to
# programming errors which are left to propagate untouched.
_IMAP_ERRORS = (IMAPClientError, imaplib.IMAP4.error, OSError)

MessageCallback = Callable[[bytes], None]


def connect(config: ConnectionConfig) -> "Session":
    """Connect and log in to the server described by *config*, then
    open its folder in read-only mode.

    Exactly one connection attempt is made. Any network, TLS, login or
    protocol error raises :py:exc:`ConnectError`. Nothing is left open
    when this function raises.
    """
    logger.info(
        "Connecting to %s:%s as %s (%s)",
        config.host,
        config.port,
        config.username,
        config.protocol,
    )
    try:
        ssl_context = create_ssl_context(config)
        client = IMAPClient(
            config.host,
            port=config.port,
            use_uid=False,
            ssl=config.implicit_tls,
            ssl_context=ssl_context,
            timeout=config.timeout,
        )
    except _IMAP_ERRORS as e:
        raise ConnectError(
            "could not connect to %s:%s: %s" % (config.host, config.port, e)
        ) from e

    try:
        if not config.implicit_tls:
            client.starttls(ssl_context)
        client.login(config.username, config.password)
        if not client.has_capability("IDLE"):
            raise ConnectError("%s does not support IDLE" % config.host)
        select_info = client.select_folder(config.folder, readonly=True)
    except _IMAP_ERRORS as e:
        _shutdown_quietly(client)
        raise ConnectError(
            "could not open %s on %s: %s" % (config.folder, config.host, e)
        ) from e
    except BaseException:
        _shutdown_quietly(client)
        raise

    message_count = select_info.get(b"EXISTS", 0)
    logger.info(
        "Opened %s read-only on %s, %d messages", config.folder, config.host, message_count
    )
    return Session(client, config.folder, message_count)


def _shutdown_quietly(client: IMAPClient) -> None:
    try:
        client.shutdown()
    except Exception as e:
        logger.info("Could not close the connection cleanly: %s", e)


class Session:
    """One logged in connection with a folder selected read-only.

    A Session is used by a single thread. Once closed it can't be
    reopened, use :py:func:`connect` to get a new one.
    """

    def __init__(self, client: IMAPClient, folder: str, message_count: int):
        self.client = client
        self.folder = folder

        # Number of messages in the folder already accounted for. Anything
        # above it announced by an EXISTS response is new.
        self.message_count = message_count
        self._exists = message_count

        self.folder_open = True
        self.connected = True
        self.broken = False

        self._idling = False
        self._idle_deadline = 0.0
        self._message_listeners: List[MessageCallback] = []

    def add_message_listener(self, callback: MessageCallback) -> None:
        """Register *callback* to be called with the raw RFC 822 bytes
        of every message arriving while :py:meth:`listen` runs.
        """
        self._message_listeners.append(callback)

    def listen(self, stop_event: threading.Event, wakeup: socket.socket) -> None:
        """Wait for new messages and pass them to the message listeners,
        forever.

        Only returns by raising: :py:exc:`StopRequested` when
        *stop_event* is set (writing to *wakeup* interrupts the wait),
        :py:exc:`SessionFault` when the connection fails.
        """
        while True:
            self.wait(stop_event, wakeup)
            for raw in self.fetch_new():
                for callback in self._message_listeners:
                    callback(raw)

    def wait(self, stop_event: threading.Event, wakeup: socket.socket) -> int:
        """Block in IDLE mode until the server announces new messages.

        Returns the number of new messages. The IDLE command is renewed
        every ``IMAP_IDLE_MAX_AGE`` seconds.
        """
        if stop_event.is_set():
            raise StopRequested()

        try:
            if not self._idling:
                self._start_idle()

            with selectors.DefaultSelector() as selector:
                selector.register(self.client.socket(), selectors.EVENT_READ, "imap")
                selector.register(wakeup, selectors.EVENT_READ, "wakeup")

                while True:
                    timeout = max(0.0, self._idle_deadline - time.monotonic())
                    events = selector.select(timeout)
                    if stop_event.is_set():
                        raise StopRequested()

                    if events:
                        responses = self.client.idle_check(timeout=0)
                        if not responses:
                            # Readable without a complete response usually
                            # means EOF. Renewing IDLE tells for sure.
                            responses = self._renew_idle()
                    else:
                        responses = self._renew_idle()

                    self._process_responses(responses)
                    if self._exists > self.message_count:
                        return self._exists - self.message_count
        except (StopRequested, SessionFault):
            raise
        except _IMAP_ERRORS as e:
            self.broken = True
            raise SessionFault("connection to %s lost: %s" % (self.client.host, e)) from e

    def fetch_new(self) -> List[bytes]:
        """Leave IDLE mode and fetch the messages announced since the
        last call, in the order of the folder.
        """
        try:
            self._stop_idle()
            first, last = self.message_count + 1, self._exists
            if last < first:
                return []
            logger.debug("Fetching messages %d:%d", first, last)
            response = self.client.fetch("%d:%d" % (first, last), ["RFC822"])
        except _IMAP_ERRORS as e:
            self.broken = True
            raise SessionFault("could not fetch new messages: %s" % e) from e

        self.message_count = last
        return [
            data[b"RFC822"]
            for _, data in sorted(response.items())
            if b"RFC822" in data
        ]

    def close(self, logout: bool = True) -> None:
        """Close the folder and the connection, whichever are still open.

        With *logout* false the connection is shut down without waiting
        for the server, as when stopping: a silent server would block
        the close otherwise.

        Never raises: errors are logged and ignored because the
        connection is usually broken already when this is called.
        """
        if not logout:
            self.broken = True

        if self.folder_open:
            self.folder_open = False
            if not self.broken:
                try:
                    self._stop_idle()
                    self.client.close_folder()
                except Exception as e:
                    logger.info("Could not close folder %s cleanly: %s", self.folder, e)
                    self.broken = True

        if self.connected:
            self.connected = False
            if not self.broken:
                try:
                    self.client.logout()
                    return
                except Exception as e:
                    logger.info("Could not log out cleanly: %s", e)
            _shutdown_quietly(self.client)

    def _start_idle(self) -> None:
        self.client.idle()
        self._idling = True
        self._idle_deadline = time.monotonic() + IMAP_IDLE_MAX_AGE
        logger.debug("Started IDLE on %s", self.folder)

    def _stop_idle(self) -> None:
        if not self._idling:
            return
        self._idling = False
        self._bound_reads()
        text, responses = self.client.idle_done()
        logger.debug("Closed IDLE command, server said: %s", text)
        self._process_responses(responses)

    def _renew_idle(self) -> List[Tuple]:
        self._idling = False
        self._bound_reads()
        text, responses = self.client.idle_done()
        logger.debug("Renewing IDLE command, server said: %s", text)
        self._start_idle()
        return responses

    def _bound_reads(self) -> None:
        # idle_check() leaves the socket without a read timeout unless one
        # was configured. Replies to DONE must come within a bounded time
        # or the connection is considered dead.
        self.client.socket().settimeout(IMAP_IDLE_READ_TIMEOUT)

    def _process_responses(self, responses: List[Tuple]) -> None:
        for response in responses:
            logger.debug("Server sent: %s", response)
            if len(response) < 2:
                continue
            if response[0] == b"BYE":
                self.broken = True
                raise SessionFault(
                    "%s closed the connection: %s" % (self.client.host, _text(response[1]))
                )
            if not isinstance(response[0], int):
                continue
            if response[1] == b"EXISTS":
                self._exists = response[0]
            elif response[1] == b"EXPUNGE":
                self._exists -= 1
                if response[0] <= self.message_count:
                    self.message_count -= 1


def _text(value: Optional[bytes]) -> str:
    if isinstance(value, bytes):
        return value.decode("ascii", "replace")
    return str(value)
