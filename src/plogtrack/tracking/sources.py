"""Sample sources that deliver positional fixes, and the inbox they share.

Two kinds of source exist. A foreground watcher polls a position provider
while the app is in front; a background task receives batches of fixes from
the platform's background location service. Both push into one FixInbox,
which the tracking engine drains on a single consumer thread.
"""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional, Protocol

from plogtrack.tracking.errors import SourceUnavailable
from plogtrack.tracking.geo import distance
from plogtrack.tracking.models import PositionFix, now_ms

logger = logging.getLogger(__name__)

FixSink = Callable[[PositionFix], None]
PositionProvider = Callable[[], Optional[PositionFix]]


class SourceKind(Enum):
    """Where a source runs."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"


@dataclass(frozen=True)
class SourceConfig:
    """Requested cadence. Both values are hints; the hardware decides."""

    time_interval_ms: int = 1000
    distance_interval_m: float = 5.0


@dataclass(frozen=True)
class SourceToken:
    """Handle returned when a source starts streaming."""

    source_name: str
    kind: SourceKind
    started_at: int


class PermissionGate(Protocol):
    """Answers whether the user granted location access for a source kind."""

    def allows(self, kind: SourceKind) -> bool: ...


class AllowAll:
    """Gate that grants every kind."""

    def allows(self, kind: SourceKind) -> bool:
        return True


class StaticGate:
    """Gate with a fixed set of granted kinds."""

    def __init__(self, granted: Iterable[SourceKind] = ()):
        self.granted = frozenset(granted)

    def allows(self, kind: SourceKind) -> bool:
        return kind in self.granted


class SampleSource(ABC):
    """A producer of positional fixes.

    start_stream() begins delivering fixes to a sink until stop() is called.
    stop() is idempotent and safe in any state.
    """

    kind: SourceKind

    def __init__(self, name: Optional[str] = None, gate: Optional[PermissionGate] = None):
        self.name = name or self.kind.value
        self.gate: PermissionGate = gate or AllowAll()
        self._lock = threading.Lock()
        self._running = False
        self._token: Optional[SourceToken] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def token(self) -> Optional[SourceToken]:
        return self._token

    def platform_available(self) -> bool:
        """Whether this platform can run the source at all."""
        return True

    def start_stream(self, config: SourceConfig, sink: FixSink) -> SourceToken:
        """Begin delivering fixes to sink.

        Raises:
            SourceUnavailable: Permission denied or platform unsupported
            RuntimeError: The source is already streaming
        """
        if not self.gate.allows(self.kind):
            raise SourceUnavailable(self.kind.value, "permission")
        if not self.platform_available():
            raise SourceUnavailable(self.kind.value, "platform")
        with self._lock:
            if self._running:
                raise RuntimeError(f"source {self.name} is already streaming")
            self._running = True
            self._token = SourceToken(self.name, self.kind, now_ms())
        self._open(config, sink)
        logger.info("source %s started", self.name)
        return self._token

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
        self._close()
        logger.info("source %s stopped", self.name)

    @abstractmethod
    def _open(self, config: SourceConfig, sink: FixSink) -> None:
        """Start producing into sink."""

    @abstractmethod
    def _close(self) -> None:
        """Stop producing. Called at most once per started stream."""


class ForegroundWatcher(SampleSource):
    """Polls a position provider on a daemon thread.

    Fixes closer than distance_interval_m to the last delivered fix are
    dropped. A provider that raises is logged and polled again next tick;
    one that returns None simply has no fix this tick.
    """

    kind = SourceKind.FOREGROUND
    # How long stop() waits for the polling thread to finish its current tick
    close_timeout_s = 5.0

    def __init__(
        self,
        provider: PositionProvider,
        name: Optional[str] = None,
        gate: Optional[PermissionGate] = None,
    ):
        super().__init__(name=name, gate=gate)
        self.provider = provider
        self._config = SourceConfig()
        self._sink: Optional[FixSink] = None
        self._last_delivered: Optional[PositionFix] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _open(self, config: SourceConfig, sink: FixSink) -> None:
        self._config = config
        self._sink = sink
        self._last_delivered = None
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name=f"plogtrack-{self.name}",
            daemon=True,
        )
        self._thread.start()

    def _close(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.close_timeout_s)
            if thread.is_alive():
                logger.warning(
                    "%s poller still busy after stop; it exits after this tick", self.name
                )
        self._thread = None

    def _run(self, stop_event: threading.Event) -> None:
        # Each thread watches only the event it was started with
        interval_s = max(0, self._config.time_interval_ms) / 1000.0
        while not stop_event.is_set():
            self.poll_once()
            stop_event.wait(interval_s)

    def poll_once(self) -> Optional[PositionFix]:
        """Ask the provider for one fix and deliver it if it passes the filter.

        Returns:
            The delivered fix, or None if nothing was delivered
        """
        sink = self._sink
        if sink is None or not self._running:
            return None
        try:
            fix = self.provider()
        except Exception:
            logger.exception("position provider for %s failed", self.name)
            return None
        if fix is None:
            return None
        last = self._last_delivered
        if last is not None and distance(last, fix) < self._config.distance_interval_m:
            return None
        self._last_delivered = fix
        sink(fix)
        return fix


class BackgroundTask(SampleSource):
    """Receives batches of fixes from a platform background location service.

    The platform calls deliver() with whatever it has buffered; fixes are
    forwarded in batch order. Batches arriving while stopped are dropped.
    """

    kind = SourceKind.BACKGROUND

    def __init__(
        self,
        name: Optional[str] = None,
        gate: Optional[PermissionGate] = None,
        available: bool = True,
    ):
        super().__init__(name=name, gate=gate)
        self.available = available
        self._sink: Optional[FixSink] = None

    def platform_available(self) -> bool:
        return self.available

    def _open(self, config: SourceConfig, sink: FixSink) -> None:
        self._sink = sink

    def _close(self) -> None:
        self._sink = None

    def deliver(self, batch: Iterable[PositionFix]) -> int:
        """Forward a batch of fixes.

        Returns:
            Number of fixes forwarded
        """
        sink = self._sink
        if sink is None or not self._running:
            logger.warning("background batch dropped: %s is not running", self.name)
            return 0
        count = 0
        for fix in batch:
            sink(fix)
            count += 1
        return count


@dataclass(frozen=True)
class InboxItem:
    fix: PositionFix
    source: Optional[str]


_CLOSED = object()


class FixInbox:
    """Thread-safe queue that every source pushes into.

    A single consumer iterates it; iteration ends once close() has been
    called and everything queued before it was handed out. A put() that
    returned True is always handed out before the end.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()
        # Guards the closed flag together with the enqueue that depends on it
        self._lock = threading.Lock()
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, fix: PositionFix, source: Optional[str] = None) -> bool:
        """Queue a fix. Returns False (and drops it) once the inbox is closed."""
        with self._lock:
            if self._closed:
                logger.debug("inbox closed, dropping fix from %s", source)
                return False
            self._queue.put(InboxItem(fix, source))
        return True

    def sink_for(self, source: Optional[str]) -> FixSink:
        """Return a sink callable that tags fixes with the source name."""

        def sink(fix: PositionFix) -> None:
            self.put(fix, source)

        return sink

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_CLOSED)

    def join(self) -> None:
        """Block until every queued fix has been consumed and processed."""
        self._queue.join()

    def __iter__(self) -> Iterator[InboxItem]:
        while not self._drained:
            item = self._queue.get()
            try:
                if item is _CLOSED:
                    self._drained = True
                    return
                yield item
            finally:
                self._queue.task_done()


class SourceManager:
    """Attaches sources to an inbox and tracks which ones are available.

    An unavailable source is reported, not raised: tracking carries on with
    whatever sources remain, including none at all.
    """

    def __init__(self, inbox: FixInbox, config: Optional[SourceConfig] = None):
        self.inbox = inbox
        self.config = config or SourceConfig()
        self._sources: list[SampleSource] = []
        self.unavailable: list[SourceUnavailable] = []

    @property
    def active_sources(self) -> list[SampleSource]:
        return [s for s in self._sources if s.is_running]

    def attach(self, source: SampleSource) -> Optional[SourceToken]:
        """Start a source feeding the inbox.

        Returns:
            The source token, or None if the source is unavailable
        """
        try:
            token = source.start_stream(self.config, self.inbox.sink_for(source.name))
        except SourceUnavailable as exc:
            self.unavailable.append(exc)
            logger.warning("%s; continuing without it", exc)
            return None
        self._sources.append(source)
        return token

    def attach_all(self, sources: Iterable[SampleSource]) -> list[SourceToken]:
        tokens = []
        for source in sources:
            token = self.attach(source)
            if token is not None:
                tokens.append(token)
        return tokens

    def stop_all(self) -> None:
        for source in self._sources:
            source.stop()
        self._sources.clear()
