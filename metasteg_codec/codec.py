import dataclasses
import json
import logging
import os
import struct
from typing import List, Optional, Sequence, Tuple

import torch

from .errors import (
    ByteNotFound,
    DecodeFailed,
    EncodeFailed,
    MalformedBlob,
    OffsetOverflow,
)
from .index import (
    FirstOccurrence,
    OffsetIndex,
    SelectionPolicy,
    get_policy,
    reference_tensor,
)

logger = logging.getLogger(__name__)

# Wire format v1: unsigned 32-bit little-endian offsets
OFFSET_WIDTH = 4
BYTE_ORDER = "little"
MAX_OFFSET = (1 << (OFFSET_WIDTH * 8)) - 1

MAGIC = b"MSTG"
WIRE_VERSION = 1
_PREAMBLE = struct.Struct("<4sBBH")
PREAMBLE_SIZE = _PREAMBLE.size


@dataclasses.dataclass
class CodecConfig:
    policy: str = "first"
    seed: Optional[int] = None
    header: bool = False
    reference_name: Optional[str] = None


@dataclasses.dataclass
class CodecKey:
    offset_width: int = OFFSET_WIDTH
    byte_order: str = BYTE_ORDER
    header: bool = False
    policy: Optional[str] = None
    payload_length: Optional[int] = None
    reference_name: Optional[str] = None
    version: str = "v1"

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "offset_width": self.offset_width,
            "byte_order": self.byte_order,
            "header": self.header,
            "policy": self.policy,
            "payload_length": self.payload_length,
            "reference_name": self.reference_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CodecKey":
        version = data.get("version", "v1")
        if version != "v1":
            raise ValueError(f"Unsupported codec key version: {version}")
        offset_width = int(data.get("offset_width", OFFSET_WIDTH))
        if offset_width != OFFSET_WIDTH:
            raise ValueError(
                f"offset_width must be {OFFSET_WIDTH} for {version} keys, got {offset_width}"
            )
        byte_order = data.get("byte_order", BYTE_ORDER)
        if byte_order != BYTE_ORDER:
            raise ValueError(f"byte_order must be {BYTE_ORDER!r}, got {byte_order!r}")
        payload_length_raw = data.get("payload_length")
        payload_length = None if payload_length_raw is None else int(payload_length_raw)
        if payload_length is not None and payload_length < 0:
            raise ValueError("payload_length must be >= 0")
        return cls(
            offset_width=offset_width,
            byte_order=byte_order,
            header=bool(data.get("header", False)),
            policy=data.get("policy"),
            payload_length=payload_length,
            reference_name=data.get("reference_name"),
            version=version,
        )


def save_codec_key(key: CodecKey, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(key.to_dict(), f, indent=2)
        f.write("\n")


def load_codec_key(path: str) -> CodecKey:
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return CodecKey.from_dict(raw)


def set_deterministic(seed: int = 0) -> None:
    torch.manual_seed(seed)


def encode(
    payload: bytes, index: OffsetIndex, policy: Optional[SelectionPolicy] = None
) -> List[int]:
    """Map every payload byte to a reference offset holding the same value.

    All-or-nothing: the first payload byte absent from the reference aborts
    the whole call with :class:`EncodeFailed`.
    """
    policy = policy or FirstOccurrence()
    values = reference_tensor(payload).to(torch.long)
    missing = (index.counts[values] == 0).nonzero(as_tuple=True)[0]
    if len(missing) > 0:
        payload_offset = int(missing[0])
        byte = int(values[payload_offset])
        raise EncodeFailed(byte, payload_offset) from ByteNotFound(byte)
    offsets = policy.choose(index, values).tolist()
    logger.debug(
        "Encoded %d payload bytes with %s policy", len(offsets), policy.name
    )
    return offsets


def decode(offsets: Sequence[int], reference: bytes) -> bytes:
    """Resolve every offset against the reference, in order."""
    offsets = list(offsets)
    # Checked as Python ints: offsets may not fit in int64
    for blob_offset, offset in enumerate(offsets):
        if not 0 <= offset < len(reference):
            raise DecodeFailed(offset, blob_offset, len(reference))
    ref = reference_tensor(reference)
    positions = torch.as_tensor(offsets, dtype=torch.long)
    logger.debug(
        "Decoded %d offsets against %d reference bytes", len(positions), len(reference)
    )
    return bytes(ref[positions].tolist())


def serialize_offsets(offsets: Sequence[int]) -> bytes:
    for offset in offsets:
        if offset < 0 or offset > MAX_OFFSET:
            raise OffsetOverflow(offset, OFFSET_WIDTH)
    return struct.pack(f"<{len(offsets)}I", *offsets)


def deserialize_offsets(data: bytes) -> List[int]:
    if len(data) % OFFSET_WIDTH != 0:
        raise MalformedBlob(
            f"blob length is not a multiple of the offset width ({OFFSET_WIDTH})",
            len(data),
        )
    return list(struct.unpack(f"<{len(data) // OFFSET_WIDTH}I", data))


def pack_blob(offsets: Sequence[int], header: bool = False) -> bytes:
    body = serialize_offsets(offsets)
    if not header:
        return body
    return _PREAMBLE.pack(MAGIC, WIRE_VERSION, OFFSET_WIDTH, 0) + body


def unpack_blob(data: bytes, header: bool = False) -> List[int]:
    if header:
        if len(data) < PREAMBLE_SIZE:
            raise MalformedBlob("blob is too short for the preamble", len(data))
        magic, version, width, reserved = _PREAMBLE.unpack_from(data)
        if magic != MAGIC:
            raise MalformedBlob(f"bad magic {magic!r}")
        if version != WIRE_VERSION:
            raise MalformedBlob(f"unsupported wire version {version}")
        if width != OFFSET_WIDTH:
            raise MalformedBlob(f"unsupported offset width {width}")
        if reserved != 0:
            raise MalformedBlob("reserved preamble bytes must be zero")
        data = data[PREAMBLE_SIZE:]
    return deserialize_offsets(data)


def encode_data_to_blob(
    payload: bytes,
    reference: bytes,
    cfg: Optional[CodecConfig] = None,
    index: Optional[OffsetIndex] = None,
) -> Tuple[bytes, CodecKey]:
    """Encode and pack ``payload``; a given ``index`` must come from ``reference``."""
    cfg = cfg or CodecConfig()
    policy = get_policy(cfg.policy, seed=cfg.seed)
    if index is None:
        index = OffsetIndex.build(reference)
    offsets = encode(payload, index, policy)
    blob = pack_blob(offsets, header=cfg.header)
    key = CodecKey(
        header=cfg.header,
        policy=policy.name,
        payload_length=len(payload),
        reference_name=(
            os.path.basename(cfg.reference_name) if cfg.reference_name else None
        ),
    )
    return blob, key


def decode_blob_to_data(
    blob: bytes, reference: bytes, key: Optional[CodecKey] = None
) -> bytes:
    key = key or CodecKey()
    offsets = unpack_blob(blob, header=key.header)
    if key.payload_length is not None and key.payload_length != len(offsets):
        raise MalformedBlob(
            f"blob holds {len(offsets)} offsets but the key expects {key.payload_length}",
            len(blob),
        )
    return decode(offsets, reference)


__all__ = [
    "OFFSET_WIDTH",
    "BYTE_ORDER",
    "MAX_OFFSET",
    "MAGIC",
    "WIRE_VERSION",
    "PREAMBLE_SIZE",
    "CodecConfig",
    "CodecKey",
    "save_codec_key",
    "load_codec_key",
    "set_deterministic",
    "encode",
    "decode",
    "serialize_offsets",
    "deserialize_offsets",
    "pack_blob",
    "unpack_blob",
    "encode_data_to_blob",
    "decode_blob_to_data",
]
