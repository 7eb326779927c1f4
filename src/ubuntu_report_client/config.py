from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from .errors import InvalidURLError

DEFAULT_BASE_URL = "https://metrics.ubuntu.com"
DEFAULT_TIMEOUT_SECONDS = 30.0


class EmptyAnswer(str, enum.Enum):
  """
  What an empty line means at the interactive consent prompt.
  """

  DECLINE = "decline"
  QUIT = "quit"


@dataclass(frozen=True)
class ClientConfig:
  """
  Configuration for the reporting client.

  Values are sourced from explicit parameters, then environment variables,
  then defaults.
  """

  base_url: str = DEFAULT_BASE_URL
  cache_dir: Optional[Path] = None
  timeout: float = DEFAULT_TIMEOUT_SECONDS
  empty_answer: EmptyAnswer = EmptyAnswer.DECLINE

  @classmethod
  def from_env(cls) -> "ClientConfig":
    return cls.from_params_or_env()

  @classmethod
  def from_params_or_env(
    cls,
    base_url: Optional[str] = None,
    cache_dir: Optional[str] = None,
    timeout: Optional[float] = None,
    empty_answer: Optional[str] = None,
  ) -> "ClientConfig":
    """
    Build configuration from explicit parameters, falling back to environment variables.

    Environment:
      - UBUNTU_REPORT_URL (default: https://metrics.ubuntu.com)
      - UBUNTU_REPORT_CACHE_DIR (default: XDG_CACHE_HOME or ~/.cache)
      - UBUNTU_REPORT_TIMEOUT in seconds (default: 30)
      - UBUNTU_REPORT_EMPTY_ANSWER: "decline" or "quit" (default: decline)
    """
    url = base_url or os.getenv("UBUNTU_REPORT_URL") or DEFAULT_BASE_URL
    validate_base_url(url)

    raw_cache = cache_dir or os.getenv("UBUNTU_REPORT_CACHE_DIR")
    cache = Path(raw_cache).expanduser() if raw_cache else None

    return cls(
      base_url=url,
      cache_dir=cache,
      timeout=timeout if timeout is not None else _get_timeout(),
      empty_answer=_parse_empty_answer(empty_answer or os.getenv("UBUNTU_REPORT_EMPTY_ANSWER")),
    )


def validate_base_url(url: str) -> None:
  if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in url):
    raise InvalidURLError(url, "contains whitespace or control characters")

  try:
    parsed = urlsplit(url)
    # Accessing port validates it.
    parsed.port
  except ValueError as exc:
    raise InvalidURLError(url, str(exc)) from exc

  if parsed.scheme not in ("http", "https") or not parsed.netloc:
    raise InvalidURLError(url, "expected an http(s) URL like https://metrics.ubuntu.com")


def _get_timeout() -> float:
  raw = os.getenv("UBUNTU_REPORT_TIMEOUT")
  if raw is None:
    return DEFAULT_TIMEOUT_SECONDS

  try:
    value = float(raw)
  except ValueError:
    return DEFAULT_TIMEOUT_SECONDS

  if value <= 0:
    return DEFAULT_TIMEOUT_SECONDS
  return value


def _parse_empty_answer(raw: Optional[str]) -> EmptyAnswer:
  if raw is None:
    return EmptyAnswer.DECLINE

  value = raw.strip().lower()
  if value == EmptyAnswer.QUIT.value:
    return EmptyAnswer.QUIT
  # Unknown values keep the conservative behavior: nothing but opt-out is sent.
  return EmptyAnswer.DECLINE
