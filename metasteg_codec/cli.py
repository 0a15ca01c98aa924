import argparse
import logging
import os
import sys
from typing import List, Optional

from .codec import (
    CodecConfig,
    CodecKey,
    decode_blob_to_data,
    encode_data_to_blob,
    load_codec_key,
    save_codec_key,
    set_deterministic,
)
from .index import BYTE_VALUES, OffsetIndex

logger = logging.getLogger(__name__)


def _read_bytes(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    with open(path, "rb") as f:
        return f.read()


def _write_bytes(path: str, data: bytes) -> None:
    if path == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        with open(path, "wb") as f:
            f.write(data)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Encode payloads as offsets into a reference binary"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--reference",
        required=True,
        help="Reference binary whose byte offsets carry the payload",
    )
    common.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    enc = subparsers.add_parser("encode", parents=[common])
    enc.add_argument("--input-bytes", required=True)
    enc.add_argument("--output-blob", required=True)
    enc.add_argument(
        "--policy",
        default="first",
        help="Offset selection policy: first, last or random",
    )
    enc.add_argument("--seed", type=int, default=None)
    enc.add_argument(
        "--header",
        action="store_true",
        help="Prefix the blob with the 8-byte magic/version preamble",
    )
    enc.add_argument(
        "--require-complete",
        action="store_true",
        help="Refuse references that lack any of the 256 byte values",
    )
    enc.add_argument("--key", help="Write the codec key JSON to this path")

    dec = subparsers.add_parser("decode", parents=[common])
    dec.add_argument("--input-blob", required=True)
    dec.add_argument("--output-bytes", required=True)
    dec.add_argument(
        "--header",
        action="store_true",
        help="Expect the 8-byte preamble (ignored when --key is given)",
    )
    dec.add_argument("--key", help="Codec key JSON written during encode")

    subparsers.add_parser("inspect", parents=[common])

    return parser


def run_encode(args) -> None:
    if args.seed is not None:
        set_deterministic(args.seed)
    reference = _read_bytes(args.reference)
    index = OffsetIndex.build(reference)
    if args.require_complete:
        index.require_complete()
    cfg = CodecConfig(
        policy=args.policy,
        seed=args.seed,
        header=args.header,
        reference_name=args.reference,
    )
    payload = _read_bytes(args.input_bytes)
    blob, key = encode_data_to_blob(payload, reference, cfg, index=index)
    _write_bytes(args.output_blob, blob)
    if args.key:
        save_codec_key(key, args.key)
    logger.info(
        "Encoded %d bytes from %s with %s into %s",
        len(payload),
        args.input_bytes,
        args.reference,
        args.output_blob,
    )


def run_decode(args) -> None:
    if args.key:
        if not os.path.exists(args.key):
            raise ValueError("--key file not found; create one during encode first")
        key = load_codec_key(args.key)
    else:
        key = CodecKey(header=args.header)
    reference = _read_bytes(args.reference)
    blob = _read_bytes(args.input_blob)
    data = decode_blob_to_data(blob, reference, key)
    _write_bytes(args.output_bytes, data)
    logger.info(
        "Decoded %s with %s into %s (%d bytes)",
        args.input_blob,
        args.reference,
        args.output_bytes,
        len(data),
    )


def run_inspect(args) -> None:
    index = OffsetIndex.build(_read_bytes(args.reference))
    missing = index.missing_values()
    print(f"reference: {args.reference}")
    print(f"length: {len(index)}")
    print(f"distinct values: {BYTE_VALUES - len(missing)}")
    if missing:
        print("missing: " + " ".join(f"{value:02x}" for value in missing))
    else:
        print("missing: none")


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "encode":
            run_encode(args)
        elif args.command == "decode":
            run_decode(args)
        elif args.command == "inspect":
            run_inspect(args)
        else:
            parser.error("Unknown command")
    except ValueError as exc:
        parser.error(str(exc))


__all__ = ["build_arg_parser", "run_encode", "run_decode", "run_inspect", "main"]


if __name__ == "__main__":
    main()
