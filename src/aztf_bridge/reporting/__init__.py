"""Progress display and reporting for import sessions."""

from aztf_bridge.reporting.live_progress import ImportProgressDisplay
from aztf_bridge.reporting.report import ImportReport, print_summary

__all__ = ["ImportProgressDisplay", "ImportReport", "print_summary"]
