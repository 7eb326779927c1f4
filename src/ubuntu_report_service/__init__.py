"""
ubuntu_report_service

Collector daemon receiving reports from ubuntu-report clients and appending
them to a rotatable record log.
"""

__version__ = "0.1.0"
