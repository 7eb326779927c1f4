from __future__ import annotations

import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import IO, Optional

DEFAULT_LOG_FILENAME = "metrics.log"

logger = logging.getLogger(__name__)


def format_record(
  rejected: bool,
  distro: str,
  variant: str,
  version: str,
  payload: str,
  now: Optional[datetime] = None,
) -> str:
  """
  Build one tab-separated record line (without the trailing newline):

      {OK|REJ}  <RFC3339 time>  <distro>  <variant>  <version>  <json>
  """
  ts = (now or datetime.now().astimezone()).isoformat(timespec="seconds")
  flat = payload.replace("\r", "").replace("\n", "")
  return "\t".join(("REJ" if rejected else "OK", ts, distro, variant, version, flat))


class RecordLog:
  """
  Append-only record file shared by all request handlers.

  One lock covers open, rotate, write and close so lines never interleave and
  a write never lands on a closed handle.
  """

  def __init__(self, path: Path) -> None:
    self.path = Path(path)
    self._file: Optional[IO[str]] = None
    self._lock = threading.Lock()

  def open(self) -> None:
    with self._lock:
      self._reopen()

  def rotate(self) -> None:
    """
    Close the current handle and reopen the configured path in append mode.

    Meant to run after an external tool moved the file away; if nothing moved
    it, writing simply continues at the end of the same file.
    """
    logger.info("Rotating log file %s", self.path)
    with self._lock:
      self._reopen()

  def write(self, rejected: bool, distro: str, variant: str, version: str, payload: str) -> str:
    with self._lock:
      f = self._file if self._file is not None else self._reopen()
      # Stamped under the lock so lines stay in time order.
      line = format_record(rejected, distro, variant, version, payload)
      logger.debug("Writing data to %s", self.path)
      f.write(line + "\n")
      f.flush()
    return line

  def close(self) -> None:
    with self._lock:
      if self._file is not None:
        logger.debug("Closing log file")
        self._file.close()
        self._file = None

  @property
  def closed(self) -> bool:
    return self._file is None

  def _reopen(self) -> IO[str]:
    if self._file is not None:
      logger.debug("Closing log file")
      self._file.close()
      self._file = None

    logger.debug("Opening log file %s", self.path)
    fd = os.open(self.path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o660)
    self._file = os.fdopen(fd, "a", encoding="utf-8")
    return self._file
