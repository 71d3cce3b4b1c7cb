"""
kpitree.commands.check - Audit a forest for consistency problems.
"""

from __future__ import annotations

import argparse
import json

from kpitree.commands._source import load_source
from kpitree.tree.audit import audit_forest


def run(args: argparse.Namespace) -> int:
    """Run the check command.

    Exit code is 1 when any error is found, or any finding at all with
    --strict.
    """
    loaded = load_source(args)
    if loaded is None:
        return 1
    name, nodes = loaded

    issues = audit_forest(nodes)
    errors = [i for i in issues if i.is_error]

    if getattr(args, "json", False):
        print(
            json.dumps(
                [
                    {
                        "kind": i.kind.value,
                        "node_id": i.node_id,
                        "message": i.message,
                        "error": i.is_error,
                    }
                    for i in issues
                ],
                indent=2,
            )
        )
    elif not issues:
        print(f"{name}: no problems found")
    else:
        for issue in issues:
            prefix = "ERROR" if issue.is_error else "WARNING"
            print(f"{prefix} {issue}")
        print(f"{name}: {len(errors)} error(s), {len(issues) - len(errors)} warning(s)")

    if errors or (issues and getattr(args, "strict", False)):
        return 1
    return 0
