"""
ubuntu_report_client

Collects anonymous system information and reports it once per release to
the metrics server, keeping a local copy of what was sent.
"""

from .api import collect, collect_and_send, send_decline, send_pending_report, send_report
from .config import ClientConfig, EmptyAnswer
from .controller import OPT_OUT_PAYLOAD, ReportType, State, SubmissionController
from .logging_setup import Verbosity, setup_logging
from .retry import RetryPump
from .store import PendingStore, ReportStore

__all__ = [
  "ClientConfig",
  "EmptyAnswer",
  "OPT_OUT_PAYLOAD",
  "PendingStore",
  "ReportStore",
  "ReportType",
  "RetryPump",
  "State",
  "SubmissionController",
  "Verbosity",
  "collect",
  "collect_and_send",
  "send_decline",
  "send_pending_report",
  "send_report",
  "setup_logging",
]
