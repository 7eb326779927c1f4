import os
import signal
import socket
import stat
import threading
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from ubuntu_report_service import __version__  # type: ignore[import]
from ubuntu_report_service import __main__ as main_mod  # type: ignore[import]
from ubuntu_report_service.__main__ import run  # type: ignore[import]
from ubuntu_report_service.config import DaemonConfig  # type: ignore[import]
from ubuntu_report_service.daemon import Daemon, DaemonStartupError, verbosity_to_level  # type: ignore[import]


def test_prepare_creates_directories_and_log(tmp_path):
  cfg = DaemonConfig(log_dir=tmp_path / "logs")
  daemon = Daemon(cfg)

  app = daemon.prepare()
  try:
    assert cfg.incoming_dir.is_dir()
    assert stat.S_IMODE(os.stat(cfg.incoming_dir).st_mode) & 0o022 == 0
    assert (cfg.incoming_dir / "metrics.log").exists()

    resp = TestClient(app).post("/ubuntu/desktop/24.04", content=b"{}")
    assert resp.status_code == 200
    assert (cfg.incoming_dir / "metrics.log").read_text().startswith("OK\t")
  finally:
    daemon.close()


def test_prepare_fails_when_log_dir_is_a_file(tmp_path):
  blocker = tmp_path / "logs"
  blocker.write_text("not a directory")

  with pytest.raises(DaemonStartupError):
    Daemon(DaemonConfig(log_dir=blocker)).prepare()


def test_prepare_fails_when_incoming_cannot_be_created(tmp_path):
  (tmp_path / "logs").mkdir()
  (tmp_path / "logs" / "incoming").write_text("not a directory")

  with pytest.raises(DaemonStartupError) as excinfo:
    Daemon(DaemonConfig(log_dir=tmp_path / "logs")).prepare()
  assert "incoming" in str(excinfo.value)


def test_rotate_and_quit_before_serving_are_safe(tmp_path):
  daemon = Daemon(DaemonConfig(log_dir=tmp_path / "logs"))
  daemon.rotate_log()
  daemon.quit()
  daemon.quit()

  # A stop requested before serving returns without binding.
  daemon.serve()
  assert daemon.record_log is not None
  assert daemon.record_log.closed


def test_rotate_keeps_records(tmp_path):
  daemon = Daemon(DaemonConfig(log_dir=tmp_path / "logs"))
  app = daemon.prepare()
  client = TestClient(app)
  try:
    client.post("/ubuntu/desktop/24.04", content=b'{"n": 1}')
    daemon.rotate_log()
    client.post("/ubuntu/desktop/24.04", content=b'{"n": 2}')
  finally:
    daemon.close()

  lines = (tmp_path / "logs" / "incoming" / "metrics.log").read_text().splitlines()
  assert [line.split("\t")[-1] for line in lines] == ['{"n":1}', '{"n":2}']


def test_verbosity_levels():
  import logging

  assert verbosity_to_level(0) == logging.WARNING
  assert verbosity_to_level(1) == logging.INFO
  assert verbosity_to_level(3) == logging.DEBUG


def test_cli_version(capsys):
  assert run(["version"]) == 0
  assert __version__ in capsys.readouterr().out


def test_cli_startup_failure_exits_non_zero(tmp_path, monkeypatch):
  monkeypatch.chdir(tmp_path)
  monkeypatch.setattr(main_mod, "setup_logging", lambda verbosity: None)
  blocker = tmp_path / "logs"
  blocker.write_text("")
  assert run(["--log-dir", str(blocker)]) == 1


def test_cli_usage_error():
  with pytest.raises(SystemExit) as excinfo:
    run(["--port", "notanumber"])
  assert excinfo.value.code == 2


def _free_port():
  with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
    s.bind(("127.0.0.1", 0))
    return s.getsockname()[1]


def test_serve_answers_then_stops_on_quit(tmp_path):
  port = _free_port()
  daemon = Daemon(DaemonConfig(log_dir=tmp_path / "logs", host="127.0.0.1", port=port))
  thread = threading.Thread(target=daemon.serve, daemon=True)
  thread.start()

  try:
    deadline = time.monotonic() + 10
    while True:
      try:
        resp = httpx.get(f"http://127.0.0.1:{port}/health", timeout=1.0)
        break
      except httpx.TransportError:
        if time.monotonic() > deadline:
          raise
        time.sleep(0.05)
    assert resp.status_code == 200

    resp = httpx.post(f"http://127.0.0.1:{port}/ubuntu/desktop/24.04", content=b"{}", timeout=5.0)
    assert resp.status_code == 200
  finally:
    daemon.quit()
    thread.join(timeout=10)

  assert not thread.is_alive()
  assert daemon.record_log is not None and daemon.record_log.closed
  assert (tmp_path / "logs" / "incoming" / "metrics.log").read_text().startswith("OK\t")


def test_failed_rotation_on_hangup_stops_daemon(tmp_path, monkeypatch):
  daemon = Daemon(DaemonConfig(log_dir=tmp_path / "logs"))
  daemon.prepare()
  try:
    def broken_rotate():
      raise OSError("disk gone")

    monkeypatch.setattr(daemon.record_log, "rotate", broken_rotate)
    daemon._handle_hup(signal.SIGHUP, None)

    assert daemon._quit_requested.is_set()
  finally:
    daemon.close()


@pytest.mark.skipif(not hasattr(signal, "SIGHUP"), reason="needs SIGHUP")
def test_hangup_while_serving_reopens_record_log(tmp_path):
  port = _free_port()
  log_dir = tmp_path / "logs"
  daemon = Daemon(DaemonConfig(log_dir=log_dir, host="127.0.0.1", port=port))
  log_path = log_dir / "incoming" / "metrics.log"
  moved = log_dir / "incoming" / "metrics.log.1"
  errors = []

  def drive():
    base = f"http://127.0.0.1:{port}"
    try:
      deadline = time.monotonic() + 10
      while True:
        try:
          httpx.get(f"{base}/health", timeout=1.0)
          break
        except httpx.TransportError:
          if time.monotonic() > deadline:
            raise
          time.sleep(0.05)

      httpx.post(f"{base}/ubuntu/desktop/24.04", content=b'{"n": 1}', timeout=5.0)
      os.rename(log_path, moved)
      os.kill(os.getpid(), signal.SIGHUP)

      deadline = time.monotonic() + 10
      while not log_path.exists():
        if time.monotonic() > deadline:
          raise AssertionError("record log was not reopened")
        time.sleep(0.05)

      httpx.post(f"{base}/ubuntu/desktop/24.04", content=b'{"n": 2}', timeout=5.0)
    except Exception as exc:  # noqa: BLE001
      errors.append(exc)
    finally:
      daemon.quit()

  driver = threading.Thread(target=drive, daemon=True)
  driver.start()
  # Signal handlers are only installed when serving from the main thread.
  daemon.serve()
  driver.join(timeout=10)

  assert errors == []
  assert moved.read_text().rstrip("\n").split("\t")[-1] == '{"n":1}'
  assert log_path.read_text().rstrip("\n").split("\t")[-1] == '{"n":2}'
  assert signal.getsignal(signal.SIGHUP) != daemon._handle_hup
