"""
Devices command implementation.

Lists every discovered device with the platforms able to target it.
"""

import logging

from dinghy.cli.utils import print_table, probe

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the devices command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    dinghy, _ = probe(args)
    devices = dinghy.devices()
    if not devices:
        print("No device found")
        return 0

    rows = []
    for device in devices:
        platforms = ", ".join(p.id for p in dinghy.compatible_platforms(device))
        rows.append((device.describe(), platforms or "no compatible platform"))
    print_table(rows)
    return 0
