"""Payload obfuscation as byte offsets into a reference binary."""

from .codec import (
    BYTE_ORDER,
    MAGIC,
    OFFSET_WIDTH,
    CodecConfig,
    CodecKey,
    decode,
    decode_blob_to_data,
    deserialize_offsets,
    encode,
    encode_data_to_blob,
    load_codec_key,
    pack_blob,
    save_codec_key,
    serialize_offsets,
    set_deterministic,
    unpack_blob,
)
from .errors import (
    ByteNotFound,
    DecodeFailed,
    EncodeFailed,
    IncompleteReference,
    MalformedBlob,
    MetastegError,
    OffsetOverflow,
)
from .index import (
    FirstOccurrence,
    LastOccurrence,
    OffsetIndex,
    SelectionPolicy,
    UniformRandom,
    get_policy,
)

__all__ = [
    "BYTE_ORDER",
    "MAGIC",
    "OFFSET_WIDTH",
    "ByteNotFound",
    "CodecConfig",
    "CodecKey",
    "DecodeFailed",
    "EncodeFailed",
    "FirstOccurrence",
    "IncompleteReference",
    "LastOccurrence",
    "MalformedBlob",
    "MetastegError",
    "OffsetIndex",
    "OffsetOverflow",
    "SelectionPolicy",
    "UniformRandom",
    "decode",
    "decode_blob_to_data",
    "deserialize_offsets",
    "encode",
    "encode_data_to_blob",
    "get_policy",
    "load_codec_key",
    "pack_blob",
    "save_codec_key",
    "serialize_offsets",
    "set_deterministic",
    "unpack_blob",
]

__version__ = "0.1.0"
