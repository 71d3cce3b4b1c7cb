"""kpitree.server - Flask REST API server for the KPI tree editor.

Provides a thin REST wrapper over a Workspace, exposing tabs, tree
editing, links and import/export via HTTP endpoints.
"""

from kpitree.server.app import create_app

__all__ = ["create_app"]
