"""CLI shim for running the codec directly from the repository checkout."""

from metasteg_codec.cli import main
from metasteg_codec.codec import (
    CodecConfig,
    CodecKey,
    decode,
    decode_blob_to_data,
    encode,
    encode_data_to_blob,
)
from metasteg_codec.index import OffsetIndex

__all__ = [
    "CodecConfig",
    "CodecKey",
    "OffsetIndex",
    "decode",
    "decode_blob_to_data",
    "encode",
    "encode_data_to_blob",
    "main",
]


if __name__ == "__main__":
    main()
