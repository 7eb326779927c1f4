"""
Daemon configuration.

Priority (highest to lowest):
1. Command-line flags
2. UBUNTU_REPORTD_* environment variables
3. YAML configuration file (--config, or ubuntu-reportd.yaml in ./, $HOME/, /etc/ubuntu-reportd/)
4. Default values
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

CONFIG_NAME = "ubuntu-reportd"
CONFIG_FILENAME = f"{CONFIG_NAME}.yaml"
ENV_PREFIX = "UBUNTU_REPORTD_"
DEFAULT_LOG_DIR = Path("/var/log") / CONFIG_NAME
DEFAULT_CONF_DIR = Path("/etc") / CONFIG_NAME
INCOMING_DIRNAME = "incoming"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
  pass


@dataclass(frozen=True)
class DaemonConfig:
  verbosity: int = 0
  log_dir: Path = DEFAULT_LOG_DIR
  host: str = "0.0.0.0"
  port: int = 8080
  distros: List[str] = field(default_factory=lambda: ["ubuntu"])
  variants: List[str] = field(default_factory=lambda: ["desktop"])

  @property
  def incoming_dir(self) -> Path:
    return self.log_dir / INCOMING_DIRNAME


def config_search_paths() -> List[Path]:
  paths = [Path.cwd()]
  home = os.getenv("HOME")
  if home:
    paths.append(Path(home))
  paths.append(DEFAULT_CONF_DIR)
  return [p / CONFIG_FILENAME for p in paths]


def load_daemon_config(
  config_file: Optional[str] = None,
  overrides: Optional[Dict[str, Any]] = None,
) -> DaemonConfig:
  values: Dict[str, Any] = {}

  path = _find_config_file(config_file)
  if path is None:
    logger.info("No configuration file. We will only use the defaults, env variables or flags.")
  else:
    logger.info("Using configuration file: %s", path)
    values.update(_read_config_file(path))

  values.update(_read_env())
  for key, value in (overrides or {}).items():
    if value is not None:
      values[key] = value

  return _build(values)


def _find_config_file(config_file: Optional[str]) -> Optional[Path]:
  if config_file:
    p = Path(config_file)
    if not p.is_file():
      raise ConfigError(f"invalid configuration file: {p} does not exist")
    return p

  for candidate in config_search_paths():
    if candidate.is_file():
      return candidate
  return None


def _read_config_file(path: Path) -> Dict[str, Any]:
  try:
    with path.open("r", encoding="utf-8") as f:
      data = yaml.safe_load(f)
  except (OSError, yaml.YAMLError) as exc:
    raise ConfigError(f"invalid configuration file: {exc}") from exc

  if data is None:
    return {}
  if not isinstance(data, dict):
    raise ConfigError(f"invalid configuration file: {path} must contain a mapping")

  values = {str(k).lower(): v for k, v in data.items() if str(k).lower() != "paths"}
  paths = data.get("paths") or data.get("Paths") or {}
  if isinstance(paths, dict):
    for k, v in paths.items():
      values[str(k).lower()] = v
  return values


def _read_env() -> Dict[str, Any]:
  values: Dict[str, Any] = {}
  for f in fields(DaemonConfig):
    raw = os.getenv(ENV_PREFIX + f.name.upper())
    if raw is not None:
      values[f.name] = raw
  return values


def _build(values: Dict[str, Any]) -> DaemonConfig:
  cfg = DaemonConfig()
  known = {f.name for f in fields(DaemonConfig)}
  unknown = set(values) - known
  if unknown:
    logger.warning("Ignoring unknown configuration keys: %s", ", ".join(sorted(unknown)))

  kwargs: Dict[str, Any] = {}
  try:
    if "verbosity" in values:
      kwargs["verbosity"] = int(values["verbosity"])
    if "port" in values:
      kwargs["port"] = int(values["port"])
  except (TypeError, ValueError) as exc:
    raise ConfigError(f"unable to decode configuration: {exc}") from exc

  if "log_dir" in values:
    kwargs["log_dir"] = Path(str(values["log_dir"])).expanduser()
  if "host" in values:
    kwargs["host"] = str(values["host"])
  for key in ("distros", "variants"):
    if key in values:
      kwargs[key] = _as_list(values[key])

  return replace(cfg, **kwargs)


def _as_list(value: Any) -> List[str]:
  if isinstance(value, str):
    return [v.strip() for v in value.split(",") if v.strip()]
  if isinstance(value, (list, tuple)):
    return [str(v) for v in value]
  raise ConfigError(f"unable to decode configuration: expected a list, got {value!r}")
