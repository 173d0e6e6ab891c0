class SngError(Exception):
    """Base class for sngkit-specific errors."""


# Parsing
class TruncatedInput(SngError, EOFError):
    pass


class InvalidFormat(SngError, ValueError):
    pass


class MalformedLength(SngError, ValueError):
    pass


# Lookup
class NotFound(SngError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable
        return str(self.args[0]) if self.args else ""


# Host filesystem
class IOFailure(SngError, OSError):
    pass


class UnsafePath(SngError, ValueError):
    pass


class ExtractionFailed(SngError):
    def __init__(self, failures):
        self.failures = failures
        names = ", ".join(name for name, _ in failures)
        super().__init__(f"{len(failures)} item(s) could not be written: {names}")
