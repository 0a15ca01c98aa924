from typing import Iterable, List, Optional


class MetastegError(ValueError):
    """Base class for every failure raised by the codec."""


class ByteNotFound(MetastegError):
    def __init__(self, byte: int, payload_offset: Optional[int] = None):
        self.byte = byte
        self.payload_offset = payload_offset
        message = f"byte 0x{byte:02x} does not occur in the reference"
        if payload_offset is not None:
            message += f" (payload offset {payload_offset})"
        super().__init__(message)


class EncodeFailed(ByteNotFound):
    """Encoding aborted as a whole because a payload byte has no offset."""

    def __init__(self, byte: int, payload_offset: int):
        super().__init__(byte, payload_offset)


class MalformedBlob(MetastegError):
    def __init__(self, reason: str, length: Optional[int] = None):
        self.reason = reason
        self.length = length
        if length is not None:
            reason = f"{reason} (blob length {length})"
        super().__init__(reason)


class DecodeFailed(MetastegError):
    def __init__(self, offset: int, blob_offset: int, reference_len: int):
        self.offset = offset
        self.blob_offset = blob_offset
        self.reference_len = reference_len
        super().__init__(
            f"offset {offset} at blob position {blob_offset} is outside "
            f"the reference (length {reference_len})"
        )


class OffsetOverflow(MetastegError):
    def __init__(self, offset: int, width: int):
        self.offset = offset
        self.width = width
        super().__init__(f"offset {offset} does not fit in {width} bytes")


class IncompleteReference(MetastegError):
    def __init__(self, missing: Iterable[int]):
        self.missing: List[int] = list(missing)
        shown = ", ".join(f"0x{value:02x}" for value in self.missing[:16])
        if len(self.missing) > 16:
            shown += ", ..."
        super().__init__(
            f"reference is missing {len(self.missing)} byte value(s): {shown}"
        )


__all__ = [
    "MetastegError",
    "ByteNotFound",
    "EncodeFailed",
    "MalformedBlob",
    "DecodeFailed",
    "OffsetOverflow",
    "IncompleteReference",
]
