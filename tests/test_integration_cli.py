import os

import pytest

import metasteg_codec
from metasteg_codec import OffsetIndex, cli


@pytest.fixture
def reference_path(tmp_path):
    path = tmp_path / "reference.png"
    path.write_bytes(os.urandom(2048) + bytes(range(256)))
    return path


@pytest.mark.parametrize("policy", ["first", "last", "random"])
def test_cli_round_trip(tmp_path, reference_path, policy: str) -> None:
    payload = b"cli integration payload \x00\xff"
    input_bytes = tmp_path / "input.bin"
    input_bytes.write_bytes(payload)
    output_blob = tmp_path / "encoded.blob"
    output_bytes = tmp_path / "decoded.bin"

    cli.main(
        [
            "encode",
            "--reference",
            str(reference_path),
            "--input-bytes",
            str(input_bytes),
            "--output-blob",
            str(output_blob),
            "--policy",
            policy,
            "--seed",
            "4",
        ]
    )
    assert len(output_blob.read_bytes()) == 4 * len(payload)

    cli.main(
        [
            "decode",
            "--reference",
            str(reference_path),
            "--input-blob",
            str(output_blob),
            "--output-bytes",
            str(output_bytes),
        ]
    )
    assert output_bytes.read_bytes() == payload


def test_cli_round_trip_with_key_and_header(tmp_path, reference_path) -> None:
    payload = b"keyed payload"
    input_bytes = tmp_path / "input.bin"
    input_bytes.write_bytes(payload)
    output_blob = tmp_path / "encoded.blob"
    output_bytes = tmp_path / "decoded.bin"
    key_path = tmp_path / "key.json"

    cli.main(
        [
            "encode",
            "--reference",
            str(reference_path),
            "--input-bytes",
            str(input_bytes),
            "--output-blob",
            str(output_blob),
            "--header",
            "--key",
            str(key_path),
        ]
    )
    assert output_blob.read_bytes()[:4] == metasteg_codec.MAGIC

    # Header setting comes from the key, not the command line
    cli.main(
        [
            "decode",
            "--reference",
            str(reference_path),
            "--input-blob",
            str(output_blob),
            "--output-bytes",
            str(output_bytes),
            "--key",
            str(key_path),
        ]
    )
    assert output_bytes.read_bytes() == payload

    key = metasteg_codec.load_codec_key(key_path)
    assert key.header is True
    assert key.policy == "first"
    assert key.payload_length == len(payload)
    assert key.reference_name == "reference.png"


def test_cli_scenario_blob_bytes(tmp_path) -> None:
    reference = tmp_path / "ref.bin"
    reference.write_bytes(bytes([0x41, 0x00, 0x41, 0xFF]))
    input_bytes = tmp_path / "input.bin"
    input_bytes.write_bytes(bytes([0x00, 0xFF]))
    output_blob = tmp_path / "out.blob"

    cli.main(
        [
            "encode",
            "--reference",
            str(reference),
            "--input-bytes",
            str(input_bytes),
            "--output-blob",
            str(output_blob),
        ]
    )
    assert output_blob.read_bytes() == bytes.fromhex("0100000003000000")


def test_cli_encode_missing_byte_exits(tmp_path, capsys) -> None:
    reference = tmp_path / "ref.bin"
    reference.write_bytes(bytes([0x41, 0x00, 0x41, 0xFF]))
    input_bytes = tmp_path / "input.bin"
    input_bytes.write_bytes(bytes([0x10]))
    output_blob = tmp_path / "out.blob"

    with pytest.raises(SystemExit) as excinfo:
        cli.main(
            [
                "encode",
                "--reference",
                str(reference),
                "--input-bytes",
                str(input_bytes),
                "--output-blob",
                str(output_blob),
            ]
        )
    assert excinfo.value.code == 2
    assert "0x10" in capsys.readouterr().err
    assert not output_blob.exists()


def test_cli_require_complete(tmp_path, capsys) -> None:
    reference = tmp_path / "ref.bin"
    reference.write_bytes(b"abc")
    input_bytes = tmp_path / "input.bin"
    input_bytes.write_bytes(b"abc")

    with pytest.raises(SystemExit):
        cli.main(
            [
                "encode",
                "--reference",
                str(reference),
                "--input-bytes",
                str(input_bytes),
                "--output-blob",
                str(tmp_path / "out.blob"),
                "--require-complete",
            ]
        )
    assert "missing 253 byte value" in capsys.readouterr().err


def test_cli_decode_malformed_blob_exits(tmp_path, reference_path, capsys) -> None:
    blob = tmp_path / "bad.blob"
    blob.write_bytes(b"\x00\x01\x02")

    with pytest.raises(SystemExit):
        cli.main(
            [
                "decode",
                "--reference",
                str(reference_path),
                "--input-blob",
                str(blob),
                "--output-bytes",
                str(tmp_path / "out.bin"),
            ]
        )
    assert "multiple of the offset width" in capsys.readouterr().err


def test_cli_decode_missing_key_exits(tmp_path, reference_path) -> None:
    blob = tmp_path / "blob"
    blob.write_bytes(b"")
    with pytest.raises(SystemExit):
        cli.main(
            [
                "decode",
                "--reference",
                str(reference_path),
                "--input-blob",
                str(blob),
                "--output-bytes",
                str(tmp_path / "out.bin"),
                "--key",
                str(tmp_path / "absent.json"),
            ]
        )


def test_cli_inspect(tmp_path, capsys) -> None:
    reference = tmp_path / "ref.bin"
    reference.write_bytes(bytes(range(1, 256)))
    cli.main(["inspect", "--reference", str(reference)])
    out = capsys.readouterr().out
    assert "length: 255" in out
    assert "distinct values: 255" in out
    assert "missing: 00" in out


def test_cli_decode_out_of_range_offset_exits(tmp_path, capsys) -> None:
    reference = tmp_path / "ref.bin"
    reference.write_bytes(bytes([0x41, 0x00, 0x41, 0xFF]))
    blob = tmp_path / "far.blob"
    blob.write_bytes(metasteg_codec.serialize_offsets([1, 70000]))
    output_bytes = tmp_path / "out.bin"

    with pytest.raises(SystemExit) as excinfo:
        cli.main(
            [
                "decode",
                "--reference",
                str(reference),
                "--input-blob",
                str(blob),
                "--output-bytes",
                str(output_bytes),
            ]
        )
    assert excinfo.value.code == 2
    err = capsys.readouterr().err
    assert "offset 70000 at blob position 1" in err
    assert "length 4" in err
    assert not output_bytes.exists()


def test_cli_encode_builds_index_once(monkeypatch, tmp_path, reference_path) -> None:
    original_build = OffsetIndex.build
    builds = []

    def counting_build(reference):
        builds.append(len(reference))
        return original_build(reference)

    monkeypatch.setattr(OffsetIndex, "build", staticmethod(counting_build))

    input_bytes = tmp_path / "input.bin"
    input_bytes.write_bytes(bytes(range(256)))
    output_blob = tmp_path / "out.blob"

    cli.main(
        [
            "encode",
            "--reference",
            str(reference_path),
            "--input-bytes",
            str(input_bytes),
            "--output-blob",
            str(output_blob),
            "--require-complete",
        ]
    )
    assert len(builds) == 1
    assert len(output_blob.read_bytes()) == 4 * 256
