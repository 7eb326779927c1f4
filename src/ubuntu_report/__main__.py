"""Entry point for python -m ubuntu_report."""

from ubuntu_report_client.__main__ import main

if __name__ == "__main__":
    main()
