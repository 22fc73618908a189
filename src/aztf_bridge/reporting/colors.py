"""Color definitions for console output.

This module provides a centralized color palette using Rich color names
for consistent visual styling across the tool's console output.
"""

from aztf_bridge.session.models import ImportStatus


class ImportColors:
    """Centralized color palette for aztf-bridge.

    Uses Rich library color names. All colors are terminal-safe and work in
    both light and dark terminals.

    Reference: https://rich.readthedocs.io/en/stable/appendix/colors.html
    """

    # Semantic colors for messages
    INFO = "cyan"
    SUCCESS = "green"
    WARNING = "yellow"
    ERROR = "red"

    # Component-specific colors
    PROGRESS = "blue"
    ADDRESS = "magenta"
    SPINNER = "dark_slate_gray1"

    # Status colors
    RUNNING = "yellow"
    COMPLETE = "green"
    FAILED = "red"
    PENDING = "dim"
    SKIPPED = "dark_orange"
    RECOMMENDED = "bright_cyan"

    # UI elements
    BORDER = "blue"
    HEADER = "bold bright_white"
    LABEL = "bold"


STATUS_STYLES: dict[ImportStatus, str] = {
    ImportStatus.PENDING: ImportColors.PENDING,
    ImportStatus.RECOMMENDED: ImportColors.RECOMMENDED,
    ImportStatus.EDITING: ImportColors.INFO,
    ImportStatus.VALIDATED: ImportColors.INFO,
    ImportStatus.SKIPPED: ImportColors.SKIPPED,
    ImportStatus.IMPORTING: ImportColors.RUNNING,
    ImportStatus.IMPORTED: ImportColors.COMPLETE,
    ImportStatus.ERRORED: ImportColors.FAILED,
}


def status_style(status: ImportStatus) -> str:
    """Rich style for an item status."""
    return STATUS_STYLES.get(status, ImportColors.INFO)
