"""
Default system collector.

Only the identity lookup is mandatory; every other field is best effort and
omitted when the underlying source is missing. Each parser is a pure function
from raw text to structured fields.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from .errors import CollectError, MissingIdentityError

INSTALLER_LOGS_PATH = "var/log/installer/telemetry"
UPGRADE_LOGS_PATH = "var/log/upgrade/telemetry"

_ID_RE = re.compile(r"^ID=(.*)$")
_VERSION_ID_RE = re.compile(r'^VERSION_ID="(.*)"$')
_MEMTOTAL_RE = re.compile(r"^MemTotal:\s+(\d+)\s+kB$")

GetenvFn = Callable[[str], Optional[str]]

logger = logging.getLogger(__name__)


class Collector(Protocol):
  def get_identity(self) -> Tuple[str, str]:
    ...

  def collect(self) -> bytes:
    ...


def parse_os_release(text: str) -> Tuple[str, str]:
  distro = version = ""
  for line in text.splitlines():
    m = _ID_RE.match(line)
    if m:
      distro = m.group(1).strip()
    m = _VERSION_ID_RE.match(line)
    if m:
      version = m.group(1).strip()
  return distro, version


def parse_meminfo(text: str) -> Optional[float]:
  """Return total RAM in GB (SI), rounded to 0.1."""
  for line in text.splitlines():
    m = _MEMTOTAL_RE.match(line.strip())
    if m:
      return round(int(m.group(1)) / (1000 * 1000), 1)
  return None


def parse_language(getenv: GetenvFn) -> str:
  lang = getenv("LC_ALL") or ""
  if not lang:
    lang = getenv("LANG") or ""
  if not lang:
    lang = (getenv("LANGUAGE") or "").split(":")[0]
  return lang.split(".")[0]


def parse_raw_json(text: str) -> Optional[Any]:
  try:
    return json.loads(text)
  except ValueError:
    return None


class SystemCollector:
  def __init__(self, root: str = "/", getenv: GetenvFn = os.getenv) -> None:
    self.root = Path(root)
    self.getenv = getenv

  def get_identity(self) -> Tuple[str, str]:
    p = self.root / "etc" / "os-release"
    try:
      text = p.read_text(encoding="utf-8")
    except OSError as exc:
      raise MissingIdentityError(f"couldn't open {p}") from exc
    except UnicodeDecodeError as exc:
      raise MissingIdentityError(f"{p} is not valid utf-8") from exc

    distro, version = parse_os_release(text)
    if not distro or not version:
      raise MissingIdentityError(
        f"distribution '{distro}' or version '{version}' information missing"
      )
    return distro, version

  def collect(self) -> bytes:
    logger.debug("Collecting metrics on system with root set to %s", self.root)
    data: Dict[str, Any] = {}

    try:
      _, version = self.get_identity()
      data["Version"] = version
    except MissingIdentityError:
      data["Version"] = ""

    data["Arch"] = platform.machine()

    ram = self._read_optional("proc/meminfo", parse_meminfo)
    if ram is not None:
      data["RAM"] = ram

    de = self.getenv("XDG_CURRENT_DESKTOP") or ""
    name = self.getenv("XDG_SESSION_DESKTOP") or ""
    session_type = self.getenv("XDG_SESSION_TYPE") or ""
    if de or name or session_type:
      data["Session"] = {"DE": de, "Name": name, "Type": session_type}

    data["Language"] = parse_language(self.getenv)

    tz = self._read_optional("etc/timezone", lambda text: text.strip() or None)
    if tz is not None:
      data["Timezone"] = tz

    install = self._read_optional(INSTALLER_LOGS_PATH, parse_raw_json)
    if install is not None:
      data["Install"] = install
    upgrade = self._read_optional(UPGRADE_LOGS_PATH, parse_raw_json)
    if upgrade is not None:
      data["Upgrade"] = upgrade

    try:
      return json.dumps(data).encode("utf-8")
    except (TypeError, ValueError) as exc:
      raise CollectError("can't be converted to a valid json") from exc

  def _read_optional(self, relative: str, parser: Callable[[str], Any]) -> Any:
    p = self.root / relative
    try:
      text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
      logger.debug("%s not available, skipping", p)
      return None
    return parser(text)
