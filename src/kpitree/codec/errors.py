"""Format failures raised by the codecs."""


class FormatError(ValueError):
    """A file could not be decoded into a KPI forest."""


class UnsupportedFormatError(FormatError):
    """The file is a recognized but unsupported variant (legacy XMind XML)."""
