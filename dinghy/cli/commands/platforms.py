"""
Platforms command implementation.
"""

from dinghy.cli.utils import print_table, probe


def run(args) -> int:
    dinghy, _ = probe(args)
    print_table((p.id, p.describe()) for p in dinghy.platforms())
    return 0
