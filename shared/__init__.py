"""
elfscope Shared Module
======================

Configuration, structured logging and console helpers used by the elfscope
engine and CLI.
"""

from shared.config import ElfscopeConfig

__all__ = ["ElfscopeConfig"]
