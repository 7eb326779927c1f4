"""
Report-once submission flow.

A run moves through:

    IDLE -> COLLECTING -> CHECKING_PRIOR -> {ALREADY_REPORTED | AWAITING_CONSENT | SENDING}
         -> {SENT | FAILED_PENDING} -> DONE

The report file for (distro, version) is written only after the server
answered 200. A failed delivery parks the payload in the pending slot for
RetryPump and still raises to the caller.
"""

from __future__ import annotations

import enum
import json
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO, Tuple

from .collector import Collector
from .config import DEFAULT_BASE_URL, EmptyAnswer
from .errors import (
  AlreadyReportedError,
  CollectError,
  DeliveryError,
  MissingIdentityError,
  StoreError,
  UbuntuReportError,
)
from .store import PendingStore, ReportStore
from .transport import HttpTransport, build_url

OPT_OUT_PAYLOAD = b'{"OptOut": true}'

logger = logging.getLogger(__name__)


class ReportType(enum.Enum):
  INTERACTIVE = "interactive"
  AUTO = "auto"
  OPT_OUT = "opt-out"


class State(enum.Enum):
  IDLE = "idle"
  COLLECTING = "collecting"
  CHECKING_PRIOR = "checking-prior"
  ALREADY_REPORTED = "already-reported"
  AWAITING_CONSENT = "awaiting-consent"
  SENDING = "sending"
  SENT = "sent"
  FAILED_PENDING = "failed-pending"
  ABORTED = "aborted"
  DONE = "done"


class Consent(enum.Enum):
  GRANTED = "granted"
  DENIED = "denied"
  QUIT = "quit"


def resolve_identity(collector: Collector) -> Tuple[str, str]:
  try:
    distro, version = collector.get_identity()
  except MissingIdentityError as exc:
    raise MissingIdentityError("couldn't get mandatory information") from exc

  if not distro or not version:
    raise MissingIdentityError(
      f"couldn't get mandatory information: distribution '{distro}' or version '{version}' missing"
    )
  return distro, version


class SubmissionController:
  def __init__(
    self,
    collector: Collector,
    transport: HttpTransport,
    report_store: ReportStore,
    pending_store: PendingStore,
    base_url: str = DEFAULT_BASE_URL,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    empty_answer: EmptyAnswer = EmptyAnswer.DECLINE,
  ) -> None:
    self.collector = collector
    self.transport = transport
    self.report_store = report_store
    self.pending_store = pending_store
    self.base_url = base_url or DEFAULT_BASE_URL
    self.stdin = stdin or sys.stdin
    self.stdout = stdout or sys.stdout
    self.empty_answer = empty_answer
    self.state = State.IDLE

  def collect(self) -> bytes:
    """
    Collect system information and return it as indented JSON.
    """
    try:
      data = self.collector.collect()
    except UbuntuReportError as exc:
      raise CollectError("couldn't collect system minimal info") from exc

    logger.debug("pretty print format the collected data to the user")
    try:
      parsed = json.loads(data)
    except ValueError as exc:
      raise CollectError("collected data is not valid json") from exc
    return json.dumps(parsed, indent=2).encode("utf-8")

  def check_previous_report(self, distro: str, version: str, always_report: bool) -> Path:
    self.state = State.CHECKING_PRIOR
    p = self.report_store.path(distro, version)
    if self.report_store.exists(p):
      logger.info("previous report found in %s", p)
      if not always_report:
        self.state = State.ALREADY_REPORTED
        raise AlreadyReportedError(p)
      logger.debug("ignore previous report requested")
    return p

  def send(self, data: Optional[bytes], acknowledgement: bool, always_report: bool = False) -> bytes:
    """
    Send previously collected data, or the opt-out message when not acknowledged.

    Returns the exact bytes delivered.
    """
    distro, version = resolve_identity(self.collector)
    report_p = self.check_previous_report(distro, version, always_report)

    # Erase potentially collected data.
    payload = data if acknowledgement and data is not None else OPT_OUT_PAYLOAD
    return self._deliver(distro, version, report_p, payload)

  def collect_and_send(self, report_type: ReportType, always_report: bool = False) -> Optional[bytes]:
    """
    Run the whole flow for report_type.

    Returns the delivered bytes, or None when the user quit at the prompt.
    """
    data: Optional[bytes] = None
    if report_type != ReportType.OPT_OUT:
      self.state = State.COLLECTING
      data = self.collect()

    distro, version = resolve_identity(self.collector)
    report_p = self.check_previous_report(distro, version, always_report)

    if report_type == ReportType.INTERACTIVE:
      if data is None:
        raise CollectError("nothing collected to show before asking for consent")
      consent = self.ask_consent(data)
      if consent == Consent.QUIT:
        self.state = State.ABORTED
        return None
      acknowledgement = consent == Consent.GRANTED
    elif report_type == ReportType.AUTO:
      logger.debug("auto report requested")
      acknowledgement = True
    else:
      logger.debug("opt-out report requested")
      acknowledgement = False

    payload = data if acknowledgement and data is not None else OPT_OUT_PAYLOAD
    return self._deliver(distro, version, report_p, payload)

  def ask_consent(self, data: bytes) -> Consent:
    self.state = State.AWAITING_CONSENT
    out = self.stdout
    out.write("This is the result of hardware and optional installer/upgrader that we collected:\n")
    out.write(data.decode("utf-8") + "\n")

    if self.empty_answer == EmptyAnswer.QUIT:
      question = "Do you agree to report this? [y (send metrics)/n (send opt out message)/Q (quit)] "
    else:
      question = "Do you agree to report this? [y (send metrics)/N (send opt out message)/q (quit)] "

    while True:
      out.write(question)
      out.flush()
      try:
        line = self.stdin.readline()
      except KeyboardInterrupt:
        logger.info("program interrupted")
        return Consent.QUIT
      if not line:
        logger.info("program interrupted")
        return Consent.QUIT

      text = line.strip().lower()
      if text == "":
        text = "q" if self.empty_answer == EmptyAnswer.QUIT else "n"

      if text in ("y", "yes"):
        logger.debug("sending report was accepted")
        return Consent.GRANTED
      if text in ("n", "no"):
        logger.debug("sending report was denied")
        return Consent.DENIED
      if text in ("q", "quit"):
        return Consent.QUIT
      logger.error("we didn't understand your answer")

  def _deliver(self, distro: str, version: str, report_p: Path, payload: bytes) -> bytes:
    url = build_url(self.base_url, distro, version)

    self.state = State.SENDING
    try:
      self.transport.send(url, payload)
    except DeliveryError as err:
      self.state = State.FAILED_PENDING
      logger.info("data were not delivered successfully to metrics server, saving for a later automated report")
      try:
        self.pending_store.write(payload)
      except StoreError as store_err:
        raise StoreError(f"couldn't save pending report on disk: {err}") from store_err
      raise

    self.state = State.SENT
    self.report_store.write(report_p, payload)
    self.state = State.DONE
    return payload
