"""
On-disk report cache.

Layout under the cache root (XDG_CACHE_HOME or ~/.cache):

    ubuntu-report/<distro>.<version>   last payload sent for this release
    ubuntu-report/pending              payload that could not be delivered yet

Existence of a report file is the only "already reported" signal.
"""

from __future__ import annotations

import logging
import os
import pwd
from pathlib import Path
from typing import Optional, Union

from .errors import NoPendingReportError, PathResolutionError, StoreError

DEFAULT_CACHE_DIR = ".cache"
REPORT_DIR = "ubuntu-report"
PENDING_FILENAME = "pending"

PathLike = Union[str, "os.PathLike[str]"]

_logger = logging.getLogger(__name__)


def cache_dir() -> Path:
  """
  Resolve the cache root: XDG_CACHE_HOME when absolute, else <home>/<XDG_CACHE_HOME or .cache>.
  """
  d = os.getenv("XDG_CACHE_HOME", "")
  if os.path.isabs(d):
    return Path(d)

  if not d:
    d = DEFAULT_CACHE_DIR
  return home_dir() / d


def home_dir() -> Path:
  h = os.getenv("HOME")
  if h:
    return Path(h)

  try:
    return Path(pwd.getpwuid(os.getuid()).pw_dir)
  except KeyError as exc:
    raise PathResolutionError("couldn't get user home directory") from exc


def report_dir(cache_override: Optional[PathLike] = None) -> Path:
  root = Path(cache_override) if cache_override else cache_dir()
  return root / REPORT_DIR


def report_path(distro: str, version: str, cache_override: Optional[PathLike] = None) -> Path:
  return report_dir(cache_override) / f"{distro}.{version}"


def pending_report_path(cache_override: Optional[PathLike] = None) -> Path:
  return report_dir(cache_override) / PENDING_FILENAME


def save_payload(path: Path, payload: bytes) -> None:
  _logger.debug("save sent metrics to %s", path)

  try:
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
  except OSError as exc:
    raise StoreError("couldn't create parent directory to save reported metrics") from exc

  # Direct overwrite: a concurrent reader may observe a truncated file while
  # the write is in progress.
  try:
    path.write_bytes(payload)
  except OSError as exc:
    raise StoreError(f"couldn't save reported or pending metrics on disk at {path}") from exc


class ReportStore:
  """
  Idempotence ledger: one file per (distro, version) holding the bytes last sent.
  """

  def __init__(self, cache_override: Optional[PathLike] = None) -> None:
    self._cache_override = cache_override

  def path(self, distro: str, version: str) -> Path:
    return report_path(distro, version, self._cache_override)

  @staticmethod
  def exists(path: Path) -> bool:
    return path.exists()

  @staticmethod
  def read(path: Path) -> bytes:
    return path.read_bytes()

  @staticmethod
  def write(path: Path, payload: bytes) -> None:
    save_payload(path, payload)


class PendingStore:
  """
  Single-slot staging area for a payload whose delivery failed.
  """

  def __init__(self, cache_override: Optional[PathLike] = None) -> None:
    self._cache_override = cache_override

  @property
  def path(self) -> Path:
    return pending_report_path(self._cache_override)

  def exists(self) -> bool:
    return self.path.exists()

  def write(self, payload: bytes) -> None:
    save_payload(self.path, payload)

  def read(self) -> bytes:
    try:
      return self.path.read_bytes()
    except FileNotFoundError as exc:
      raise NoPendingReportError(f"no pending report found in {self.path}") from exc
    except OSError as exc:
      raise StoreError(f"couldn't read pending report in {self.path}") from exc

  def clear(self) -> None:
    try:
      self.path.unlink()
    except OSError as exc:
      raise StoreError("couldn't remove pending report after a successful report") from exc
