"""Exceptions raised by the tagmap configuration layer."""


class ConfigError(Exception):
    """Raised when settings cannot be read, merged, or validated."""
