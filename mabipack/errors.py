from typing import Optional


class PackError(Exception):
    """Base class for pack-specific errors.

    ``entry`` names the archive entry being processed when the failure is
    specific to one entry; it is prefixed to the message.
    """

    def __init__(self, message: str = "", *, entry: Optional[str] = None):
        self.entry = entry
        self.reason = message
        super().__init__(f"{entry}: {message}" if entry else message)

    def with_entry(self, entry: str) -> "PackError":
        if self.entry:
            return self
        return type(self)(self.reason, entry=entry)


# Container structure
class FormatError(PackError):
    pass


class HeaderMagicError(FormatError):
    pass


class FileCountMismatch(FormatError):
    pass


class StringBlockError(FormatError):
    pass


class IndexTruncatedError(FormatError):
    pass


# Content
class CorruptedContentError(PackError):
    pass


# Caller input
class InvalidVersionKey(PackError, ValueError):
    pass


class InvalidFilterError(PackError, ValueError):
    pass


class PathResolutionError(PackError):
    pass


# Assembler invariants
class InternalError(PackError):
    pass
