from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .errors import ApiError
from .schemas import Invoice
from .settings import POLL_INTERVAL

logger = logging.getLogger(__name__)


class InvoicePoller:
    """Re-fetch an invoice at a fixed interval until it reaches a final status.

    Whether to keep going is decided from the invoice returned by the most
    recent fetch, so polling ends on the same tick a terminal status shows
    up. ``stop()`` interrupts a pending wait straight away.
    """

    def __init__(
        self,
        fetch: Callable[[], Invoice],
        *,
        interval: float = POLL_INTERVAL,
        on_update: Optional[Callable[[Invoice], None]] = None,
        on_error: Optional[Callable[[ApiError], None]] = None,
    ) -> None:
        self._fetch = fetch
        self.interval = interval
        self._on_update = on_update
        self._on_error = on_error
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.latest: Optional[Invoice] = None
        self.requests = 0

    @property
    def finished(self) -> bool:
        return self.latest is not None and self.latest.status.is_terminal

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> bool:
        """Fetch once and report whether another poll is needed."""

        self.requests += 1
        try:
            invoice = self._fetch()
        except ApiError as exc:
            logger.warning("Invoice poll failed: %s", exc.message)
            if self._on_error is not None:
                self._on_error(exc)
            return True

        self.latest = invoice
        logger.debug("Invoice %s status %s", invoice.number, invoice.status.value)
        if self._on_update is not None:
            self._on_update(invoice)
        return not invoice.status.is_terminal

    def run(self) -> Optional[Invoice]:
        """Poll in the calling thread until a final status or ``stop()``."""

        while not self._stop.is_set():
            if not self.poll_once():
                break
            if self._stop.wait(self.interval):
                break
        return self.latest

    def start(self) -> "InvoicePoller":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="invoice-poller", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def __enter__(self) -> "InvoicePoller":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
        self.join()
