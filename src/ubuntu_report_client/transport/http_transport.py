from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..config import DEFAULT_TIMEOUT_SECONDS, validate_base_url
from ..errors import NetworkFailureError, NonOKStatusError

VARIANT = "desktop"

_logger = logging.getLogger("ubuntu_report_client.transport")


def build_url(base_url: str, distro: str, version: str) -> str:
  """
  Append <distro>/desktop/<version> to the path of base_url.

  Raises InvalidURLError before any network activity if base_url is unusable.
  """
  validate_base_url(base_url)

  parsed = urlsplit(base_url)
  segments = [s for s in parsed.path.split("/") if s]
  segments.extend([distro, VARIANT, version])
  path = "/" + "/".join(segments)
  return urlunsplit((parsed.scheme, parsed.netloc, path, parsed.query, parsed.fragment))


@dataclass
class HttpTransport:
  """
  POSTs a JSON payload to the metrics server.

  The httpx client is created once and owns the timeout policy; tests inject
  a client backed by httpx.MockTransport. Success means HTTP 200 exactly.
  """

  timeout: float = DEFAULT_TIMEOUT_SECONDS
  client: Optional[httpx.Client] = None
  _owns_client: bool = field(default=False, init=False, repr=False)

  def __post_init__(self) -> None:
    if self.client is None:
      self.client = httpx.Client(timeout=httpx.Timeout(self.timeout))
      self._owns_client = True

  def send(self, url: str, data: bytes) -> None:
    _logger.debug("sending %s to %s", data, url)
    client = self.client
    if client is None:
      raise NetworkFailureError(f"no http client to send to {url}")

    try:
      resp = client.post(
        url,
        content=data,
        headers={"Content-Type": "application/json"},
      )
    except httpx.HTTPError as exc:
      raise NetworkFailureError(f"couldn't send post http request to {url}") from exc

    if resp.status_code != httpx.codes.OK:
      raise NonOKStatusError(resp.status_code, resp.reason_phrase)

  def close(self) -> None:
    if self._owns_client and self.client is not None:
      self.client.close()

  def __enter__(self) -> "HttpTransport":
    return self

  def __exit__(self, *exc_info: object) -> None:
    self.close()
