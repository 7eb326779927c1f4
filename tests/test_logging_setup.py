import io
import logging

from ubuntu_report_client.errors import NetworkFailureError, StoreError  # type: ignore[import]
from ubuntu_report_client.logging_setup import Verbosity, format_error, setup_logging  # type: ignore[import]


def _chained_error():
  try:
    try:
      raise OSError("disk full")
    except OSError as exc:
      raise StoreError("couldn't save pending report") from exc
  except StoreError as exc:
    return exc


def test_verbosity_from_count():
  assert Verbosity.from_count(0) == Verbosity.QUIET
  assert Verbosity.from_count(1) == Verbosity.INFO
  assert Verbosity.from_count(2) == Verbosity.DEBUG
  assert Verbosity.from_count(5) == Verbosity.DEBUG


def test_format_error_terse_chain():
  err = _chained_error()
  assert format_error(err, Verbosity.QUIET) == "couldn't save pending report: disk full"
  assert format_error(NetworkFailureError("unreachable"), Verbosity.INFO) == "unreachable"


def test_format_error_debug_includes_traceback():
  text = format_error(_chained_error(), Verbosity.DEBUG)
  assert "Traceback" in text
  assert "OSError: disk full" in text
  assert "StoreError: couldn't save pending report" in text


def test_setup_logging_levels_and_no_duplicate_handlers():
  logger = logging.getLogger("ubuntu_report_client.test_setup")
  stream = io.StringIO()

  setup_logging(Verbosity.QUIET, logger=logger, stream=stream)
  assert logger.level == logging.ERROR
  setup_logging(Verbosity.INFO, logger=logger, stream=stream)
  assert logger.level == logging.INFO
  assert len([h for h in logger.handlers if getattr(h, "_ubuntu_report", False)]) == 1

  logger.propagate = False
  try:
    logger.info("hello")
  finally:
    logger.propagate = True
  assert "INFO: hello" in stream.getvalue()
