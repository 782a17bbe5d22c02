class ParsesmError(Exception):
    """Base exception for parsesm."""

    def __init__(self, message, *args):
        self.message = message
        super().__init__(message, *args)


class UnsupportedSourceMap(ParsesmError):
    """Raised when a payload is not a regular or indexed source map."""


class BadPathError(ParsesmError):
    """Raised when a logical source path has no file name component."""
