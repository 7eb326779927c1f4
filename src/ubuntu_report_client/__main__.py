from __future__ import annotations

import argparse
import logging
import sys
from typing import List, NoReturn, Optional

from .api import collect, collect_and_send, send_pending_report
from .config import ClientConfig
from .controller import ReportType
from .errors import AlreadyReportedError, NoPendingReportError, UbuntuReportError
from .logging_setup import Verbosity, format_error, setup_logging

_logger = logging.getLogger("ubuntu_report_client.cli")


def _add_common_flags(parser: argparse.ArgumentParser, suppress: bool) -> None:
  def default(value):
    return argparse.SUPPRESS if suppress else value

  parser.add_argument(
    "-v",
    "--verbose",
    action="count",
    default=default(0),
    help="issue INFO (-v) and DEBUG (-vv) output",
  )
  parser.add_argument(
    "-u",
    "--url",
    default=default(None),
    help="server url to send report to (default: https://metrics.ubuntu.com)",
  )
  parser.add_argument(
    "-f",
    "--force",
    action="store_true",
    default=default(False),
    help="collect and send new report even if already reported",
  )


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="ubuntu-report",
    description=(
      "Report metrics from your system, install and upgrades. "
      "This information can't be used to identify a single machine and is "
      "presented before being sent to the server."
    ),
  )
  _add_common_flags(parser, suppress=False)

  sub = parser.add_subparsers(dest="command", metavar="{show,send,interactive}")

  show = sub.add_parser("show", help="Show information from the report without sending it")
  _add_common_flags(show, suppress=True)

  send = sub.add_parser("send", help="Send or decline the report without showing it")
  send.add_argument("answer", choices=["yes", "no"], help="yes to send metrics, no to send the opt-out message")
  _add_common_flags(send, suppress=True)

  interactive = sub.add_parser("interactive", help="Show the report and prompt before sending (default)")
  _add_common_flags(interactive, suppress=True)

  # Hidden: run by the service manager to flush a report that failed to send.
  service = sub.add_parser("service")
  _add_common_flags(service, suppress=True)

  return parser


def run(argv: Optional[List[str]] = None) -> int:
  parser = build_parser()
  args = parser.parse_args(argv)

  verbosity = Verbosity.from_count(args.verbose)
  setup_logging(verbosity)

  command = args.command or "interactive"
  try:
    if command == "show":
      sys.stdout.write(collect().decode("utf-8") + "\n")
      return 0

    config = ClientConfig.from_params_or_env(base_url=args.url)

    if command == "service":
      try:
        send_pending_report(config=config)
      except NoPendingReportError as exc:
        _logger.info(format_error(exc, verbosity))
        print("No pending report to send.")
      return 0

    if command == "send":
      report_type = ReportType.AUTO if args.answer == "yes" else ReportType.OPT_OUT
    else:
      report_type = ReportType.INTERACTIVE

    collect_and_send(report_type, always_report=args.force, config=config)
    return 0
  except AlreadyReportedError as exc:
    print(str(exc), file=sys.stderr)
    return 1
  except UbuntuReportError as exc:
    _logger.error(format_error(exc, verbosity))
    return 1


def main(argv: Optional[List[str]] = None) -> NoReturn:
  sys.exit(run(argv))


if __name__ == "__main__":  # pragma: no cover
  main()
