"""
FireChain - System Assembly
Builds the full component graph from settings.
"""

from src.system.container import (
    FireChainSystem,
    build_ledger,
    build_notifier,
    build_system,
    get_system,
    set_system,
)

__all__ = [
    "FireChainSystem",
    "build_ledger",
    "build_notifier",
    "build_system",
    "get_system",
    "set_system",
]
