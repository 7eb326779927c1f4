from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path
from types import FrameType
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .api import create_app
from .config import DaemonConfig
from .records import DEFAULT_LOG_FILENAME, RecordLog

logger = logging.getLogger(__name__)


class DaemonStartupError(Exception):
  pass


def ensure_dir_with_perms(path: Path, perm: int) -> None:
  path.mkdir(mode=perm, parents=True, exist_ok=True)
  if not path.is_dir():
    raise NotADirectoryError(f"{path} is not a directory")


def verbosity_to_level(verbosity: int) -> int:
  if verbosity <= 0:
    return logging.WARNING
  if verbosity == 1:
    return logging.INFO
  return logging.DEBUG


def setup_logging(verbosity: int) -> None:
  logging.basicConfig(
    level=verbosity_to_level(verbosity),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    force=True,
  )
  logger.debug("Debug mode is enabled")


class Daemon:
  """
  Owns the record log and the HTTP server.

  SIGINT/SIGTERM request a graceful shutdown; SIGHUP rotates
  the record log.
  """

  def __init__(self, config: DaemonConfig) -> None:
    self.config = config
    self.record_log: Optional[RecordLog] = None
    self.app: Optional[FastAPI] = None
    self._server: Optional[uvicorn.Server] = None
    self._quit_requested = threading.Event()

  def prepare(self) -> FastAPI:
    """
    Create the log and incoming directories and open the record log.

    Must succeed before anything listens on the network.
    """
    cfg = self.config
    try:
      ensure_dir_with_perms(cfg.log_dir, 0o755)
    except OSError as exc:
      raise DaemonStartupError(f"error initializing log directory at {str(cfg.log_dir)!r}: {exc}") from exc
    try:
      ensure_dir_with_perms(cfg.incoming_dir, 0o755)
    except OSError as exc:
      raise DaemonStartupError(
        f"error initializing log incoming directory at {str(cfg.incoming_dir)!r}: {exc}"
      ) from exc

    record_log = RecordLog(cfg.incoming_dir / DEFAULT_LOG_FILENAME)
    try:
      record_log.open()
    except OSError as exc:
      raise DaemonStartupError(f"error opening record log at {str(record_log.path)!r}: {exc}") from exc

    logger.debug("Accepted distros: %s", cfg.distros)
    logger.debug("Accepted variants: %s", cfg.variants)
    self.record_log = record_log
    self.app = create_app(record_log, cfg.distros, cfg.variants)
    return self.app

  def serve(self) -> None:
    """
    Blocks until the server stops.
    """
    app = self.app or self.prepare()
    if self._quit_requested.is_set():
      logger.info("Stop requested before serving, not starting the server")
      self.close()
      return

    server_config = uvicorn.Config(
      app,
      host=self.config.host,
      port=self.config.port,
      log_config=None,
      access_log=False,
    )
    self._server = uvicorn.Server(server_config)
    if self._quit_requested.is_set():
      self._server.should_exit = True

    # uvicorn swaps SIGINT/SIGTERM while running and re-raises them on exit.
    previous = {}
    if threading.current_thread() is threading.main_thread():
      previous[signal.SIGHUP] = signal.signal(signal.SIGHUP, self._handle_hup)
      for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, self._handle_stop)

    logger.info("Starting server on %s:%d", self.config.host, self.config.port)
    try:
      self._server.run()
    finally:
      for sig, handler in previous.items():
        signal.signal(sig, handler)
      self.close()

  def rotate_log(self) -> None:
    if self.record_log is None:
      logger.debug("No record log opened yet, nothing to rotate")
      return
    self.record_log.rotate()

  def quit(self) -> None:
    logger.info("Stopping daemon requested.")
    self._quit_requested.set()
    if self._server is not None:
      self._server.should_exit = True

  def close(self) -> None:
    if self.record_log is not None:
      self.record_log.close()

  def _handle_hup(self, signum: int, frame: Optional[FrameType]) -> None:
    try:
      self.rotate_log()
    except OSError:
      logger.exception("Failed to rotate record log, stopping")
      self.quit()

  def _handle_stop(self, signum: int, frame: Optional[FrameType]) -> None:
    self.quit()
