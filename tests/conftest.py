import json
from typing import Callable, List, Optional

import httpx
import pytest

from ubuntu_report_client.errors import MissingIdentityError  # type: ignore[import]
from ubuntu_report_client.transport import HttpTransport  # type: ignore[import]


class FakeCollector:
  def __init__(self, distro: str = "ubuntu", version: str = "24.04", data: Optional[dict] = None) -> None:
    self.distro = distro
    self.version = version
    self.data = data if data is not None else {"Version": version, "RAM": 8.0}
    self.collect_calls = 0

  def get_identity(self):
    if not self.distro or not self.version:
      raise MissingIdentityError(f"distribution '{self.distro}' or version '{self.version}' information missing")
    return self.distro, self.version

  def collect(self) -> bytes:
    self.collect_calls += 1
    return json.dumps(self.data).encode("utf-8")


class RecordingServer:
  """
  httpx.MockTransport handler recording every request.

  statuses is consumed one per request; the last entry repeats. An exception
  instance in the list is raised instead of answering.
  """

  def __init__(self, statuses: Optional[List[object]] = None) -> None:
    self.statuses = list(statuses or [200])
    self.requests: List[httpx.Request] = []

  def __call__(self, request: httpx.Request) -> httpx.Response:
    self.requests.append(request)
    status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
    if isinstance(status, Exception):
      raise status
    return httpx.Response(status)

  @property
  def bodies(self) -> List[bytes]:
    return [r.content for r in self.requests]

  def transport(self) -> HttpTransport:
    return HttpTransport(client=httpx.Client(transport=httpx.MockTransport(self)))


@pytest.fixture
def cache_dir(tmp_path, monkeypatch):
  monkeypatch.delenv("UBUNTU_REPORT_CACHE_DIR", raising=False)
  monkeypatch.delenv("UBUNTU_REPORT_URL", raising=False)
  monkeypatch.delenv("UBUNTU_REPORT_EMPTY_ANSWER", raising=False)
  monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
  return tmp_path / "cache"


@pytest.fixture
def collector() -> FakeCollector:
  return FakeCollector()


@pytest.fixture
def make_server() -> Callable[..., RecordingServer]:
  return RecordingServer
