"""
kpitree.commands.serve - Start the REST API server.

Requires flask and flask-cors via the kpitree[server] extra.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from kpitree.commands._source import load_config_for
from kpitree.workspace.session import Workspace


def run(args: argparse.Namespace) -> int:
    """Start the server on the configured host and port."""
    try:
        from kpitree.server import create_app
    except ImportError:
        print("Error: The server requires additional dependencies.", file=sys.stderr)
        print("Install with: pip install kpitree[server]", file=sys.stderr)
        return 1

    config = load_config_for(args)
    server_config = config.get("server", {})
    host = args.host or server_config.get("host", "127.0.0.1")
    port = args.port or int(server_config.get("port", 8080))
    workspace_config = config.get("workspace", {})
    state_file = args.state or Path(workspace_config.get("state_file", ".kpitree/state.json"))

    workspace = Workspace.from_state_file(state_file, config)
    app = create_app(workspace, config)

    print(
        f"""
======================================
  kpitree server
======================================

State:  {state_file}
Server: http://{host}:{port}

Press Ctrl+C to stop
"""
    )

    try:
        app.run(host=host, port=port, debug=False)
    except KeyboardInterrupt:
        print("\nServer stopped.")
    return 0
