from __future__ import annotations

from pathlib import Path
from typing import Optional


class UbuntuReportError(Exception):
  """
  Base class for every error raised by the reporting client.
  """


class PathResolutionError(UbuntuReportError):
  pass


class MissingIdentityError(UbuntuReportError):
  pass


class CollectError(UbuntuReportError):
  pass


class StoreError(UbuntuReportError):
  pass


class AlreadyReportedError(UbuntuReportError):
  """
  A report for this distro/version is already on disk.

  This is an expected outcome for a periodic run, not a fault.
  """

  def __init__(self, path: Path) -> None:
    self.path = path
    super().__init__(
      f"metrics from this machine have already been reported and can be found in: {path}, "
      "please use the --force flag if you really want to report them again."
    )


class InvalidURLError(UbuntuReportError):
  def __init__(self, url: str, reason: str) -> None:
    self.url = url
    super().__init__(f"invalid base URL {url!r}: {reason}")


class DeliveryError(UbuntuReportError):
  """
  The report did not reach the server. Retry policy does not depend on the subclass.
  """


class NetworkFailureError(DeliveryError):
  pass


class NonOKStatusError(DeliveryError):
  def __init__(self, status_code: int, reason: Optional[str] = None) -> None:
    self.status_code = status_code
    detail = f"{status_code} {reason}" if reason else str(status_code)
    super().__init__(f"incorrect status code received: {detail}")


class NoPendingReportError(UbuntuReportError):
  pass
