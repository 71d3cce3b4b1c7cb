"""
kpitree.config.defaults - Default configuration values
"""

CONFIG_FILENAME = ".kpitree.toml"

DEFAULT_CONFIG = {
    "tree": {
        # Seconds a rejected move's reason stays visible
        "move_error_ttl": 5.0,
    },
    "json": {
        "indent": 2,
    },
    "xmind": {
        "creator_name": "KPI Tree Dashboard",
        "creator_version": "1.0.0",
    },
    "workspace": {
        "state_file": ".kpitree/state.json",
        "default_preset": "consolidated",
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8080,
    },
}
