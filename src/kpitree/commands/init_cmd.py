"""
kpitree.commands.init_cmd - Create a starter configuration file.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from kpitree.config import CONFIG_FILENAME, render_default_config


def run(args: argparse.Namespace) -> int:
    """Write .kpitree.toml with the default settings to the current directory."""
    target = Path.cwd() / CONFIG_FILENAME
    if target.exists() and not getattr(args, "force", False):
        print(f"Configuration already exists: {target}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        return 1

    target.write_text(render_default_config(), encoding="utf-8")
    print(f"Created {target}")
    return 0
