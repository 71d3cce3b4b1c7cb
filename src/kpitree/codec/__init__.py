"""
kpitree.codec - JSON and XMind Zen import/export for KPI forests
"""

from kpitree.codec.errors import FormatError, UnsupportedFormatError
from kpitree.codec.files import (
    ImportResult,
    display_name,
    export_bytes,
    export_file,
    import_bytes,
    import_file,
)
from kpitree.codec.json_codec import deserialize, serialize
from kpitree.codec.xmind import decode_xmind, encode_xmind

__all__ = [
    "FormatError",
    "ImportResult",
    "UnsupportedFormatError",
    "decode_xmind",
    "deserialize",
    "display_name",
    "encode_xmind",
    "export_bytes",
    "export_file",
    "import_bytes",
    "import_file",
    "serialize",
]
