"""
kpitree.commands - CLI command implementations
"""

__all__ = [
    "check",
    "convert",
    "init_cmd",
    "links",
    "move",
    "serve",
    "show",
]
