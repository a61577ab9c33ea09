from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, Optional

from . import config
from .browser import BrowserPage, launch_browser
from .logging_utils import _crawler_event
from .utils import log_line

Launcher = Callable[[Optional[bool]], BrowserPage]

_STOP = object()


class SessionClosedError(RuntimeError):
    """Raised when a browser call targets a session that has been closed."""


class SessionLostError(RuntimeError):
    """Raised when a job needs its live browser session and has none."""


class SessionWorker(threading.Thread):
    """
    Dedicated thread owning one browser session.

    IMPORTANT:
    - Every browser call for the session runs here, in submission order.
    - While no call is queued the worker lets the browser dispatch its events,
      so dialogs opened by the human are still accepted.
    """

    def __init__(self, name: str) -> None:
        super().__init__(name=name, daemon=True)
        self._commands: "queue.Queue[Any]" = queue.Queue()
        self._stopped = threading.Event()
        # Orders submissions against stop() so nothing is queued behind _STOP.
        self._queue_lock = Lock()
        self._page: Optional[BrowserPage] = None

    def attach(self, page: BrowserPage) -> None:
        """Start pumping events for *page* while idle."""

        self._page = page

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        with self._queue_lock:
            if self._stopped.is_set():
                raise SessionClosedError("Browser session is closed")
            self._commands.put((future, fn, args, kwargs))
        return future

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        if threading.current_thread() is self:
            return fn(*args, **kwargs)
        return self.submit(fn, *args, **kwargs).result()

    def stop(self) -> None:
        with self._queue_lock:
            if self._stopped.is_set():
                return
            self._stopped.set()
            self._commands.put(_STOP)

    def _pump(self, page: BrowserPage) -> None:
        try:
            page.wait(config.SESSION_IDLE_PUMP_MS)
        except Exception as exc:  # noqa: BLE001
            # Typically the human closed the window; stop pumping a dead page.
            log_line(f"[SESSION] Idle event pump stopped: {exc}", logging.WARNING)
            self._page = None

    def _next_command(self) -> Any:
        page = self._page
        if page is None:
            try:
                return self._commands.get(timeout=config.SESSION_IDLE_PUMP_MS / 1000)
            except queue.Empty:
                return None
        try:
            return self._commands.get_nowait()
        except queue.Empty:
            self._pump(page)
            return None

    def run(self) -> None:
        while True:
            item = self._next_command()
            if item is None:
                continue
            if item is _STOP:
                break
            future, fn, args, kwargs = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = fn(*args, **kwargs)
            except Exception as exc:  # noqa: BLE001
                future.set_exception(exc)
            else:
                future.set_result(result)

        while True:
            try:
                item = self._commands.get_nowait()
            except queue.Empty:
                break
            if item is _STOP:
                continue
            future = item[0]
            if future.set_running_or_notify_cancel():
                future.set_exception(SessionClosedError("Browser session is closed"))


_PAGE_METHODS = frozenset(
    {
        "navigate",
        "evaluate",
        "content",
        "click",
        "fill",
        "is_visible",
        "wait",
        "on_dialog",
        "navigation_count",
        "current_url",
    }
)


class ThreadBoundPage:
    """Forwards :class:`BrowserPage` calls to the owning session worker."""

    def __init__(self, session: "CrawlSession") -> None:
        self._session = session

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name not in _PAGE_METHODS:
            raise AttributeError(name)
        session = self._session
        target = getattr(session.browser, name)

        def _bound(*args: Any, **kwargs: Any) -> Any:
            if session.closed:
                raise SessionClosedError("Browser session is closed")
            session.last_activity = time.time()
            return session.worker.call(target, *args, **kwargs)

        return _bound


@dataclass
class CrawlSession:
    job_id: str
    browser: BrowserPage
    worker: SessionWorker
    last_activity: float = field(default_factory=time.time)
    closed: bool = False
    page: Any = None

    def __post_init__(self) -> None:
        if self.page is None:
            self.page = ThreadBoundPage(self)


def _auto_accept_dialog(dialog: Any) -> None:
    try:
        log_line(f"[SESSION] Auto-accepting dialog: {dialog.message}")
        dialog.accept()
    except Exception as exc:  # noqa: BLE001
        log_line(f"[SESSION] Could not accept dialog: {exc}", logging.WARNING)


class SessionManager:
    """Owns the job id -> live browser session mapping."""

    def __init__(self, launcher: Optional[Launcher] = None) -> None:
        self._launcher: Launcher = launcher or launch_browser
        self._sessions: Dict[str, CrawlSession] = {}
        self._lock = Lock()

    def open(self, job_id: str, *, headless: Optional[bool] = None) -> CrawlSession:
        """Launch a browser for *job_id* with dialogs auto-accepted.

        Any session the job already owns is closed first.
        """

        self.close(job_id)

        worker = SessionWorker(name=f"session-{job_id[:8]}")
        worker.start()
        try:
            browser = worker.call(self._launcher, headless)
            worker.call(browser.on_dialog, _auto_accept_dialog)
        except Exception:
            worker.stop()
            raise
        worker.attach(browser)

        session = CrawlSession(job_id=job_id, browser=browser, worker=worker)
        with self._lock:
            self._sessions[job_id] = session

        _crawler_event("session", job_id=job_id, kind="opened", headless=headless)
        return session

    def get(self, job_id: str) -> Optional[CrawlSession]:
        with self._lock:
            return self._sessions.get(job_id)

    def has(self, job_id: str) -> bool:
        return self.get(job_id) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def idle_seconds(self, now: Optional[float] = None) -> Dict[str, float]:
        """Seconds since each open session last saw a browser call, by job id."""

        now = time.time() if now is None else now
        with self._lock:
            return {job_id: now - s.last_activity for job_id, s in self._sessions.items()}

    def close(self, job_id: str, *, wait: bool = False) -> None:
        """Best-effort browser shutdown; the mapping is always removed.

        The shutdown is queued behind any browser call already in flight, so
        by default this returns without waiting for it.
        """

        with self._lock:
            session = self._sessions.pop(job_id, None)
        if session is None:
            return

        session.closed = True

        def _shutdown() -> None:
            try:
                session.browser.close()
            except Exception as exc:  # noqa: BLE001
                log_line(f"[SESSION] Browser close failed for job {job_id}: {exc}", logging.WARNING)

        future: Optional[Future] = None
        try:
            future = session.worker.submit(_shutdown)
        except SessionClosedError:
            pass
        session.worker.stop()
        _crawler_event("session", job_id=job_id, kind="closed")

        if wait and future is not None:
            try:
                future.result()
            except Exception:  # noqa: BLE001
                pass

    def close_all(self, *, wait: bool = False) -> None:
        with self._lock:
            job_ids = list(self._sessions)
        for job_id in job_ids:
            self.close(job_id, wait=wait)


__all__ = [
    "CrawlSession",
    "SessionClosedError",
    "SessionLostError",
    "SessionManager",
    "SessionWorker",
    "ThreadBoundPage",
]
