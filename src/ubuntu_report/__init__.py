"""ubuntu_report package alias.

Lets users run `python -m ubuntu_report` instead of
`python -m ubuntu_report_client`, matching the installed `ubuntu-report`
command.
"""

from ubuntu_report_client import *  # noqa: F403, F401
