from __future__ import annotations

import enum
import logging
import sys
import traceback
from typing import List, Optional, TextIO


class Verbosity(enum.IntEnum):
  QUIET = 0
  INFO = 1
  DEBUG = 2

  @classmethod
  def from_count(cls, count: int) -> "Verbosity":
    if count <= 0:
      return cls.QUIET
    if count == 1:
      return cls.INFO
    return cls.DEBUG


_LEVELS = {
  Verbosity.QUIET: logging.ERROR,
  Verbosity.INFO: logging.INFO,
  Verbosity.DEBUG: logging.DEBUG,
}


def setup_logging(
  verbosity: Verbosity = Verbosity.QUIET,
  logger: Optional[logging.Logger] = None,
  stream: Optional[TextIO] = None,
) -> None:
  """
  Configure the client logger hierarchy for the given verbosity.

  Existing handlers installed by this function are replaced, so calling it
  twice does not duplicate output.
  """
  target = logger or logging.getLogger("ubuntu_report_client")
  target.setLevel(_LEVELS[verbosity])

  for existing in list(target.handlers):
    if getattr(existing, "_ubuntu_report", False):
      target.removeHandler(existing)

  handler = logging.StreamHandler(stream or sys.stderr)
  if verbosity >= Verbosity.DEBUG:
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
  else:
    fmt = "%(levelname)s: %(message)s"
  handler.setFormatter(logging.Formatter(fmt))
  handler._ubuntu_report = True  # type: ignore[attr-defined]
  target.addHandler(handler)

  if verbosity >= Verbosity.DEBUG:
    target.debug("verbosity set to debug and will print stacktraces")


def format_error(err: BaseException, verbosity: Verbosity) -> str:
  """
  Render an error for the CLI boundary.

  At DEBUG the whole chained traceback is returned; otherwise the messages of
  the error and its causes joined with ": ".
  """
  if verbosity >= Verbosity.DEBUG:
    return "".join(traceback.format_exception(type(err), err, err.__traceback__)).rstrip()

  parts: List[str] = []
  current: Optional[BaseException] = err
  while current is not None:
    msg = str(current) or type(current).__name__
    parts.append(msg)
    current = current.__cause__
  return ": ".join(parts)
