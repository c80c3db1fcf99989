"""
CLI commands for dtsli.
"""

from dtsli.cli.get_sli import get_sli_command

__all__ = ["get_sli_command"]
