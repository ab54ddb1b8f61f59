# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

"""Keep an IMAP IDLE connection open and report newly arrived messages.

The listener runs in a single background thread which connects, waits
for IDLE notifications, decodes new messages and hands them to a
consumer. When anything goes wrong the connection is closed, and a new
one is attempted after ``BACKOFF_DELAY`` seconds until the listener is
stopped.
"""

import enum
import itertools
import socket
import threading
import time
from logging import getLogger
from typing import Callable, Optional

import cachetools

from .config import ConnectionConfig
from .connector import connect, Session
from .decode import decode_message
from .exceptions import ConfigError, ConnectError, SessionFault, StopRequested

logger = getLogger(__name__)

BACKOFF_DELAY = 10

MessageConsumer = Callable[[Optional[str], str], None]


class ListenerState(enum.Enum):
    IDLE_START = "idle_start"
    CONNECTING = "connecting"
    WAITING = "waiting"
    DECODING = "decoding"
    CLEANUP = "cleanup"
    BACKOFF = "backoff"
    STOPPED = "stopped"


def log_message(subject: Optional[str], body: str) -> None:
    """Default consumer, logs every new message."""
    logger.info("New message - Subject: %s", subject)
    logger.info("Body: %s", body)


class FailureLog:
    """Recent connection failures.

    The listener is considered failing when it recorded a handful of
    errors in a short period of time. Failures are forgotten after a
    while, or as soon as a connection succeeds.
    """

    TTL = 60 * 60  # Errors are forgotten after an hour
    MAX_ITEMS = 20  # Keep at most 20 errors
    ERRORS_THRESHOLD = 5  # Failing after 5 errors

    def __init__(self, timer: Callable[[], float] = time.monotonic):
        self._errors = cachetools.TTLCache(self.MAX_ITEMS, self.TTL, timer=timer)
        self._counter = itertools.count()

    def __len__(self) -> int:
        self._errors.expire()
        return len(self._errors)

    @property
    def failing(self) -> bool:
        return len(self) >= self.ERRORS_THRESHOLD

    def record(self) -> None:
        # Only the number of entries matters
        self._errors[next(self._counter)] = True

    def clear(self) -> None:
        self._errors.clear()


class IMAPListener:
    def __init__(
        self,
        config: ConnectionConfig,
        on_message: MessageConsumer = log_message,
        connector: Callable[[ConnectionConfig], Session] = connect,
        backoff_delay: float = BACKOFF_DELAY,
    ):
        """Listen for new messages in the folder described by *config*.

        *on_message* is called with the subject (or ``None``) and the
        plain text body of every new message. It runs in the listener
        thread so it should return quickly.

        *connector* opens sessions, it is only replaced in tests.

        Call :py:meth:`start` to begin listening and :py:meth:`stop` to
        terminate. The listener can also be used as a context manager.
        """
        if not isinstance(config, ConnectionConfig):
            raise ConfigError("expected a ConnectionConfig, got %r" % (config,))
        self.config = config
        self.on_message = on_message
        self.backoff_delay = backoff_delay
        self.failures = FailureLog()
        self.state = ListenerState.IDLE_START
        self._connect = connector

        self._should_stop = threading.Event()
        # Lock protecting _thread and the wakeup sockets
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._wakeup_r: Optional[socket.socket] = None
        self._wakeup_w: Optional[socket.socket] = None

    def start(self) -> None:
        """Start the listener thread. Does nothing if already started.

        Raises :py:exc:`ConfigError` if the configuration is invalid.
        """
        self.config.validate()
        with self._lock:
            if self._should_stop.is_set():
                logger.warning("IMAP listener was stopped, it can't be restarted")
                return
            if self._thread is not None:
                return
            self._wakeup_r, self._wakeup_w = socket.socketpair()
            self._thread = threading.Thread(
                target=self.run, name="imapwatch-listener", daemon=True
            )
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the listener and release all its resources.

        Interrupts the IDLE wait or the delay before reconnecting, then
        waits for the listener thread to terminate. It is safe to call
        this more than once, or before :py:meth:`start`.
        """
        with self._lock:
            if not self._should_stop.is_set():
                logger.info("Stopping IMAP listener")
            self._should_stop.set()
            thread = self._thread
            if self._wakeup_w is not None:
                try:
                    self._wakeup_w.send(b"\0")
                except OSError:
                    # The buffer is full, the listener is woken up already
                    pass

        if thread is None:
            self.state = ListenerState.STOPPED
            return
        if thread is threading.current_thread():
            # Called by the consumer, the loop exits once it returns
            return
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("IMAP listener did not stop within %s seconds", timeout)
            return
        self._close_wakeup()

    def _close_wakeup(self) -> None:
        with self._lock:
            for sock in (self._wakeup_r, self._wakeup_w):
                if sock is not None:
                    sock.close()
            self._wakeup_r = self._wakeup_w = None

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the listener thread to terminate.

        Returns ``True`` if it is not running anymore.
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def run(self) -> None:
        logger.info("IMAP listener started for %s", self.config.host)
        try:
            while not self._should_stop.is_set():
                self._run_session()
                if self._should_stop.is_set():
                    break
                self._backoff()
        finally:
            self.state = ListenerState.STOPPED
            self._close_wakeup()
            logger.info("IMAP listener stopped")

    def _run_session(self) -> None:
        """Connect, then wait for messages until something goes wrong.

        Whatever happens the session is closed before returning.
        """
        session = None
        try:
            self.state = ListenerState.CONNECTING
            session = self._connect(self.config)
            self.failures.clear()
            if self._should_stop.is_set():
                return
            session.add_message_listener(self._on_new_message)
            self.state = ListenerState.WAITING
            logger.info("Listening for new messages in %s via IMAP IDLE", session.folder)
            session.listen(self._should_stop, self._wakeup_r)
        except StopRequested:
            logger.debug("Wait interrupted by stop request")
        except ConnectError as e:
            self._record_failure("Could not connect: %s", e)
        except SessionFault as e:
            self._record_failure("Lost connection: %s", e)
        except Exception:
            self.failures.record()
            logger.exception("Unexpected error in IMAP listener")
        finally:
            self.state = ListenerState.CLEANUP
            if session is not None:
                session.close(logout=not self._should_stop.is_set())

    def _on_new_message(self, raw: bytes) -> None:
        self.state = ListenerState.DECODING
        try:
            message = decode_message(raw)
            try:
                self.on_message(message.subject, message.body)
            except Exception:
                logger.exception("Error delivering message %r", message.subject)
        finally:
            self.state = ListenerState.WAITING

    def _record_failure(self, msg: str, error: Exception) -> None:
        self.failures.record()
        if self._should_stop.is_set():
            logger.info(msg, error)
        elif self.failures.failing:
            logger.error(
                msg + " (%d failures in the last hour)", error, len(self.failures)
            )
        else:
            logger.warning(msg, error)

    def _backoff(self) -> None:
        self.state = ListenerState.BACKOFF
        logger.info("Reconnecting in %s seconds", self.backoff_delay)
        if self._should_stop.wait(self.backoff_delay):
            logger.debug("Delay before reconnecting interrupted by stop request")
