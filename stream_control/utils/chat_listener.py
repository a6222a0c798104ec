"""
Background IRC listener for Twitch chat.

Connects anonymously (read-only) and hands every chat message to the
registered handlers.
"""

import random
import re
import socket
import ssl
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from .logger import get_logger
from .twitch_client import ChatMessage

logger = get_logger("chat_listener")

IRC_HOST = "irc.chat.twitch.tv"
IRC_PORT = 6697
RECONNECT_DELAY = 5.0
JOIN_TIMEOUT = 2.0

PRIVMSG_RE = re.compile(
    r"(?:@(\S+)\s+)?:(\w+)!\w+@\w+\.tmi\.twitch\.tv\s+PRIVMSG\s+#(\w+)\s+:(.+)"
)


def parse_message(raw: str) -> ChatMessage | None:
    """Parse an IRC line into a ChatMessage, or None if it isn't a PRIVMSG."""
    # PRIVMSG format: @tags :user!user@user.tmi.twitch.tv PRIVMSG #channel :message
    match = PRIVMSG_RE.match(raw.strip())
    if not match:
        return None

    _tags, username, _channel, message = match.groups()
    return ChatMessage(username=username, message=message)


@dataclass
class ChatListener:
    """Background listener for Twitch IRC chat.

    Each start() begins a new run with its own stop event and socket, so a
    run that is still shutting down can never be revived by the next start().
    """

    channel: str
    nick: str = ""
    _socket: ssl.SSLSocket | None = None
    _thread: threading.Thread | None = None
    _stop: threading.Event | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _handlers: list[Callable[[ChatMessage], None]] = field(default_factory=list)

    def __post_init__(self):
        self.channel = self.channel.lstrip("#").lower()
        if not self.nick:
            # Anonymous login; Twitch accepts any justinfan nick without a password
            self.nick = f"justinfan{random.randint(10000, 99999)}"

    def add_handler(self, handler: Callable[[ChatMessage], None]) -> None:
        """Add a message handler."""
        self._handlers.append(handler)

    def _connect(self) -> ssl.SSLSocket:
        """Connect to Twitch IRC."""
        logger.debug(f"Connecting to Twitch IRC for #{self.channel}")
        raw = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        raw.settimeout(8.0)  # Set timeout BEFORE SSL wrap and connect
        ctx = ssl.create_default_context()
        sock = ctx.wrap_socket(raw, server_hostname=IRC_HOST)
        sock.connect((IRC_HOST, IRC_PORT))
        sock.settimeout(1.0)  # Short timeout for responsive shutdown

        sock.send(f"NICK {self.nick}\r\n".encode())
        sock.send(b"CAP REQ :twitch.tv/tags twitch.tv/commands\r\n")
        sock.send(f"JOIN #{self.channel}\r\n".encode())
        return sock

    def _dispatch(self, sock, line: str) -> None:
        if line.startswith("PING"):
            sock.send(b"PONG :tmi.twitch.tv\r\n")
            return

        msg = parse_message(line)
        if not msg:
            return

        for handler in self._handlers:
            try:
                handler(msg)
            except Exception as e:
                logger.warning(f"Chat handler error: {e}")

    def _read_until_closed(self, sock, stop: threading.Event) -> None:
        buffer = ""
        while not stop.is_set():
            try:
                data = sock.recv(4096).decode("utf-8", errors="ignore")
            except socket.timeout:
                continue
            if not data:
                raise ConnectionError("connection closed by server")

            buffer += data
            while "\r\n" in buffer and not stop.is_set():
                line, buffer = buffer.split("\r\n", 1)
                self._dispatch(sock, line)

    def _listen_loop(self, stop: threading.Event) -> None:
        """Connect, read, and reconnect until this run's stop event is set."""
        while not stop.is_set():
            sock = None
            try:
                sock = self._connect()
                with self._lock:
                    if stop.is_set():
                        break
                    self._socket = sock
                logger.info(f"Connected to Twitch chat channel #{self.channel}")
                self._read_until_closed(sock, stop)
            except Exception as e:
                if stop.is_set():
                    break
                logger.error(f"Disconnected from Twitch chat ({e})... reconnecting in {RECONNECT_DELAY:.0f} seconds...")
                stop.wait(RECONNECT_DELAY)
            finally:
                if sock is not None:
                    _close(sock)
                with self._lock:
                    if self._socket is sock:
                        self._socket = None

    def start(self) -> None:
        """Start the listener in a background thread."""
        with self._lock:
            if self.is_running:
                return
            previous = self._thread

        if previous is not None and previous.is_alive():
            # A stop() is still winding the last run down
            previous.join(timeout=JOIN_TIMEOUT)

        with self._lock:
            if self.is_running:
                return
            self._stop = threading.Event()
            self._thread = threading.Thread(
                target=self._listen_loop, args=(self._stop,), daemon=True, name="chat-listener"
            )
            self._thread.start()
        logger.info(f"Chat listener starting for #{self.channel} (connecting in background)")

    def stop(self) -> None:
        """Stop the listener."""
        with self._lock:
            if not self.is_running:
                return
            self._stop.set()
            thread = self._thread
            sock, self._socket = self._socket, None
        if sock is not None:
            _close(sock)
        thread.join(timeout=JOIN_TIMEOUT)
        with self._lock:
            if self._thread is thread:
                self._thread = None
        logger.warning("Successfully disconnected from Twitch chat")

    @property
    def is_running(self) -> bool:
        return self._stop is not None and not self._stop.is_set()


def _close(sock) -> None:
    try:
        sock.close()
    except OSError as e:
        logger.debug(f"Socket close error (expected): {e}")
