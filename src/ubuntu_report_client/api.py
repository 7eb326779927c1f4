"""
High-level entry points: build the default collector, transport and stores
from ClientConfig and run one operation.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO

from .collector import Collector, SystemCollector
from .config import ClientConfig
from .controller import ReportType, SubmissionController
from .retry import RetryPump
from .store import PendingStore, ReportStore
from .transport import HttpTransport

logger = logging.getLogger(__name__)


@contextmanager
def _controller(
  config: ClientConfig,
  collector: Optional[Collector] = None,
  stdin: Optional[TextIO] = None,
  stdout: Optional[TextIO] = None,
) -> Iterator[SubmissionController]:
  with HttpTransport(timeout=config.timeout) as transport:
    yield SubmissionController(
      collector=collector or SystemCollector(),
      transport=transport,
      report_store=ReportStore(config.cache_dir),
      pending_store=PendingStore(config.cache_dir),
      base_url=config.base_url,
      stdin=stdin,
      stdout=stdout,
      empty_answer=config.empty_answer,
    )


def _config(base_url: Optional[str], config: Optional[ClientConfig]) -> ClientConfig:
  if config is not None:
    return config
  return ClientConfig.from_params_or_env(base_url=base_url)


def collect(collector: Optional[Collector] = None) -> bytes:
  """Collect system info and return a pretty printed version of it."""
  logger.debug("collect system information")
  with _controller(ClientConfig(), collector) as ctl:
    return ctl.collect()


def send_report(
  data: bytes,
  always_report: bool = False,
  base_url: Optional[str] = None,
  config: Optional[ClientConfig] = None,
  collector: Optional[Collector] = None,
) -> bytes:
  """
  POST data from a previous collect().

  Nothing is sent if this release was already reported, unless always_report is set.
  """
  logger.debug("report system information")
  with _controller(_config(base_url, config), collector) as ctl:
    return ctl.send(data, acknowledgement=True, always_report=always_report)


def send_decline(
  always_report: bool = False,
  base_url: Optional[str] = None,
  config: Optional[ClientConfig] = None,
  collector: Optional[Collector] = None,
) -> bytes:
  """POST the opt-out message."""
  logger.debug("report opt-out")
  with _controller(_config(base_url, config), collector) as ctl:
    return ctl.send(None, acknowledgement=False, always_report=always_report)


def collect_and_send(
  report_type: ReportType,
  always_report: bool = False,
  base_url: Optional[str] = None,
  config: Optional[ClientConfig] = None,
  collector: Optional[Collector] = None,
  stdin: Optional[TextIO] = None,
  stdout: Optional[TextIO] = None,
) -> Optional[bytes]:
  logger.debug("collect and report system information")
  with _controller(_config(base_url, config), collector, stdin, stdout) as ctl:
    return ctl.collect_and_send(report_type, always_report=always_report)


def send_pending_report(
  base_url: Optional[str] = None,
  config: Optional[ClientConfig] = None,
  collector: Optional[Collector] = None,
) -> bytes:
  """
  Deliver a report that previously failed, backing off until it succeeds.
  """
  logger.debug("try sending previous report")
  cfg = _config(base_url, config)
  with HttpTransport(timeout=cfg.timeout) as transport:
    pump = RetryPump(
      collector=collector or SystemCollector(),
      transport=transport,
      report_store=ReportStore(cfg.cache_dir),
      pending_store=PendingStore(cfg.cache_dir),
    )
    return pump.run(cfg.base_url)
