import re

import pytest

import shdc_odin

_BYTE_RE = re.compile(r"0x([0-9a-f]{2}),")


def _decode(lines: list[str]) -> bytes:
    return bytes(int(m, 16) for line in lines for m in _BYTE_RE.findall(line))


@pytest.mark.parametrize(
    "data",
    [b"", b"\x00", bytes(range(16)), bytes(range(256)), b"\xff" * 33],
)
def test_embed_bytes_decodes_to_input(data: bytes) -> None:
    assert _decode(shdc_odin.embed_bytes(data)) == data


def test_embed_bytes_writes_sixteen_lowercase_hex_bytes_per_line() -> None:
    lines = shdc_odin.embed_bytes(bytes(range(20)))

    assert len(lines) == 2
    assert lines[0] == "    " + "".join(f"0x{i:02x}," for i in range(16))
    assert lines[1] == "    0x10,0x11,0x12,0x13,"


def test_embed_bytes_is_deterministic() -> None:
    data = bytes(range(100))

    assert shdc_odin.embed_bytes(data) == shdc_odin.embed_bytes(data)


def test_source_payload_appends_exactly_one_terminator() -> None:
    source = "void main() {}\n"

    payload = shdc_odin.source_payload(source)

    assert len(payload) == len(source.encode("utf-8")) + 1
    assert payload[-1] == 0
    assert payload[:-1] == source.encode("utf-8")


def test_source_payload_counts_utf8_bytes() -> None:
    payload = shdc_odin.source_payload("// größe\n")

    assert len(payload) == len("// größe\n".encode("utf-8")) + 1


def test_format_payload_array_declares_private_sized_array() -> None:
    lines = shdc_odin.format_payload_array("tex_vs_source_glsl330", b"ab\0")

    assert lines == [
        "@(private)",
        "tex_vs_source_glsl330 := [3]u8 {",
        "    0x61,0x62,0x00,",
        "}",
    ]


def test_format_source_comment_defuses_nested_comment_tokens() -> None:
    lines = shdc_odin.format_source_comment("a /* b */ c\nd")

    assert lines == ["/*", "   a /_ b _/ c", "   d", "*/"]


def test_payload_for_prefers_bytecode(make_backend) -> None:
    backend = make_backend("hlsl5", bytecode={"vs": b"DXBC"})

    vs_payload = shdc_odin.payload_for("tex_", "vs", backend)
    fs_payload = shdc_odin.payload_for("tex_", "fs", backend)

    assert vs_payload.is_bytecode
    assert vs_payload.array_name == "tex_vs_bytecode_hlsl5"
    assert vs_payload.data == b"DXBC"
    assert not fs_payload.is_bytecode
    assert fs_payload.array_name == "tex_fs_source_hlsl5"
    assert fs_payload.data[-1] == 0


def test_payload_for_missing_snippet_raises(make_backend) -> None:
    backend = make_backend("glsl330", omit=("fs",))

    with pytest.raises(LookupError):
        shdc_odin.payload_for("", "fs", backend)
