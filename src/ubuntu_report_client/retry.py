from __future__ import annotations

import logging
import time
from typing import Callable

from .collector import Collector
from .config import DEFAULT_BASE_URL
from .controller import resolve_identity
from .errors import DeliveryError
from .store import PendingStore, ReportStore
from .transport import HttpTransport, build_url

INITIAL_WAIT_SECONDS = 30.0
MAX_WAIT_SECONDS = 30 * 60.0

logger = logging.getLogger(__name__)


class RetryPump:
  """
  Deliver the pending report, backing off exponentially between attempts.

  There is no attempt limit: the loop only ends on a successful delivery or a
  local error. Callers that need a bound (e.g. a service manager) must kill
  the process from outside.
  """

  def __init__(
    self,
    collector: Collector,
    transport: HttpTransport,
    report_store: ReportStore,
    pending_store: PendingStore,
    sleep: Callable[[float], None] = time.sleep,
    initial_wait: float = INITIAL_WAIT_SECONDS,
    max_wait: float = MAX_WAIT_SECONDS,
  ) -> None:
    self.collector = collector
    self.transport = transport
    self.report_store = report_store
    self.pending_store = pending_store
    self._sleep = sleep
    self.initial_wait = initial_wait
    self.max_wait = max_wait

  def run(self, base_url: str = DEFAULT_BASE_URL) -> bytes:
    """
    Returns the delivered payload. Raises NoPendingReportError when there is nothing to send.
    """
    data = self.pending_store.read()

    distro, version = resolve_identity(self.collector)
    report_p = self.report_store.path(distro, version)
    url = build_url(base_url or DEFAULT_BASE_URL, distro, version)

    wait = self.initial_wait
    attempt = 1
    while True:
      try:
        self.transport.send(url, data)
        break
      except DeliveryError as exc:
        logger.warning(
          "data were not delivered successfully to metrics server (attempt %d), retrying in %ds: %s",
          attempt,
          int(wait),
          exc,
        )
      self._sleep(wait)
      wait = min(wait * 2, self.max_wait)
      attempt += 1

    self.pending_store.clear()
    self.report_store.write(report_p, data)
    logger.info("pending report delivered and saved to %s", report_p)
    return data
