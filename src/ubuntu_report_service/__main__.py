from __future__ import annotations

import argparse
import logging
import sys
from typing import List, NoReturn, Optional

from . import __version__
from .config import CONFIG_NAME, ConfigError, load_daemon_config
from .daemon import Daemon, DaemonStartupError, setup_logging

logger = logging.getLogger("ubuntu_report_service.cli")


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog=CONFIG_NAME,
    description=f"Collector service {CONFIG_NAME} to receive report data from ubuntu-report.",
  )
  parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=None,
    help="issue INFO (-v) or DEBUG (-vv) output",
  )
  parser.add_argument("-c", "--config", default=None, help="use a specific configuration file")
  parser.add_argument("--host", default=None, help="address to listen on")
  parser.add_argument("-p", "--port", type=int, default=None, help="port to listen on")
  parser.add_argument("--log-dir", dest="log_dir", default=None, help="directory holding incoming/metrics.log")

  sub = parser.add_subparsers(dest="command")
  sub.add_parser("version", help="Returns version of daemon and exits")
  return parser


def run(argv: Optional[List[str]] = None) -> int:
  args = build_parser().parse_args(argv)

  if args.command == "version":
    print(f"{CONFIG_NAME}\t{__version__}")
    return 0

  # Configure from the flag first so config loading itself can log.
  setup_logging(args.verbosity or 0)

  overrides = {
    "verbosity": args.verbosity,
    "host": args.host,
    "port": args.port,
    "log_dir": args.log_dir,
  }
  try:
    config = load_daemon_config(args.config, overrides)
  except ConfigError as exc:
    logger.error("can't load configuration: %s", exc)
    return 1

  setup_logging(config.verbosity)

  daemon = Daemon(config)
  try:
    daemon.prepare()
    daemon.serve()
  except DaemonStartupError as exc:
    logger.error("%s", exc)
    return 1
  return 0


def main(argv: Optional[List[str]] = None) -> NoReturn:
  sys.exit(run(argv))


if __name__ == "__main__":  # pragma: no cover
  main()
