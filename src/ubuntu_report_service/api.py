from __future__ import annotations

import json
import logging
import re
from typing import Awaitable, Callable, Iterable, Tuple

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from . import __version__
from .records import RecordLog

VERSION_PATTERN = re.compile(r"^\d\d\.(0[1-9]|1[0-2])$")

logger = logging.getLogger(__name__)


def validate_version(version: str) -> bool:
  """
  Two-digit year and month, e.g. 24.04.

  Broader than the official release list so flavours with slightly different
  numbering are still accepted.
  """
  return VERSION_PATTERN.match(version) is not None


def parse_body(body: bytes) -> Tuple[bool, str]:
  """
  Return (valid, text to record).

  Valid bodies are JSON objects and get re-serialized compactly; anything
  else is kept as raw text so the rejected record still shows what was sent.
  """
  try:
    data = json.loads(body.decode("utf-8"))
  except (UnicodeDecodeError, ValueError):
    return False, body.decode("utf-8", errors="replace")

  if not isinstance(data, dict):
    return False, body.decode("utf-8")
  return True, json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def create_app(
  record_log: RecordLog,
  distros: Iterable[str],
  variants: Iterable[str],
) -> FastAPI:
  accepted_distros = frozenset(distros)
  accepted_variants = frozenset(variants)

  app = FastAPI(title="ubuntu-report collector", version=__version__)
  app.state.record_log = record_log

  @app.middleware("http")
  async def http_logger(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    client = request.client
    remote = f"{client.host}:{client.port}" if client else "unknown"
    logger.info("Received request: %s %s from %s", request.method, request.url.path, remote)
    return await call_next(request)

  @app.api_route("/health", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
  async def health_check(request: Request) -> PlainTextResponse:
    if request.method not in ("GET", "HEAD"):
      return PlainTextResponse("Method is not supported.\n", status_code=404)
    # TODO: verify that records can be written before reporting healthy.
    return PlainTextResponse("Health Check: Service is running\n")

  @app.post("/{distro}/{variant}/{version}")
  async def submit(distro: str, variant: str, version: str, request: Request) -> PlainTextResponse:
    """
    Record the submission, accepted or rejected, and answer 200 either way.

    The one exception is a failed disk write, which answers 500 so the client
    keeps the report pending and retries instead of losing it.
    """
    reasons = []
    if distro not in accepted_distros:
      reasons.append(f"distro {distro!r} not accepted")
    if variant not in accepted_variants:
      reasons.append(f"variant {variant!r} not accepted")
    if not validate_version(version):
      reasons.append(f"invalid version {version!r}")

    body = await request.body()
    valid, text = parse_body(body)
    if not valid:
      reasons.append("invalid json body")

    rejected = bool(reasons)
    if rejected:
      logger.info("Rejecting report for %s/%s/%s: %s", distro, variant, version, "; ".join(reasons))

    try:
      await run_in_threadpool(record_log.write, rejected, distro, variant, version, text)
    except OSError:
      logger.exception("Failed to write record for %s/%s/%s", distro, variant, version)
      return PlainTextResponse("Error writing record\n", status_code=500)

    return PlainTextResponse("POST request processed\n")

  return app
