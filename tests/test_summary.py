from __future__ import annotations

from pathlib import Path

import pytest

import shdc_odin


def _make_summary(
    *,
    module: str = "tex",
    backends: tuple[shdc_odin.BackendCount, ...] = (),
    warning_count: int = 0,
) -> shdc_odin.GenerationSummary:
    return shdc_odin.GenerationSummary(
        module=module,
        output="/out/tex.odin",
        programs=("textured",),
        uniform_blocks=2,
        backends=backends,
        line_count=1234,
        warning_count=warning_count,
    )


def test_build_backend_count_splits_bytecode_and_source(shader_input, make_backend) -> None:
    backend = make_backend("hlsl5", bytecode={"vs": b"\x00" * 100})

    count = shdc_odin.build_backend_count(shader_input, backend)

    fs_len = len(shdc_odin.source_payload(backend.find_source("fs").source_code))
    assert count == shdc_odin.BackendCount(
        slang="hlsl5",
        backend=".D3D11",
        bytecode=1,
        source=1,
        payload_bytes=100 + fs_len,
    )
    assert count.bytecode + count.source == len(shader_input.shader_snippets)


def test_build_generation_summary_from_result(
    tmp_path: Path, shader_input, make_backends, make_emit_config
) -> None:
    backends = make_backends("glsl330", "wgsl")
    config = make_emit_config("wgsl", "glsl330")
    result = shdc_odin.generate(shader_input, backends, config, tmp_path / "tex.odin")

    summary = shdc_odin.build_generation_summary(shader_input, backends, config, result)

    assert summary.module == "tex"
    assert summary.output == str((tmp_path / "tex.odin").resolve())
    assert summary.programs == ("textured",)
    assert summary.uniform_blocks == 2
    assert [b.slang for b in summary.backends] == ["glsl330", "wgsl"]
    assert summary.line_count == result.file.line_count
    assert summary.warning_count == 0


def test_format_generation_summary_layout() -> None:
    summary = _make_summary(
        backends=(
            shdc_odin.BackendCount("glsl330", ".GLCORE33", 0, 2, 1500),
            shdc_odin.BackendCount("metal_macos", ".METAL_MACOS", 2, 0, 20480),
        ),
        warning_count=1,
    )

    text = shdc_odin.format_generation_summary(summary)
    lines = text.splitlines()

    assert lines[0] == "Shader module 'tex' generated:"
    assert "  Output:     /out/tex.odin" in lines
    assert "  Programs:   textured" in lines
    assert "  Uniforms:   2 block structs" in lines
    assert any(
        line.startswith("    glsl330      .GLCORE33") and line.endswith("1,500 bytes")
        for line in lines
    )
    assert any("2 bytecode" in line and "20,480 bytes" in line for line in lines)
    assert "  Total: 1,234 lines, 1 warnings" in lines
    assert text.endswith("\n")
    assert not text.endswith("\n\n")


def test_format_generation_summary_without_module() -> None:
    text = shdc_odin.format_generation_summary(_make_summary(module=""))

    assert text.splitlines()[0] == "Shader module generated:"


def test_print_generation_summary_writes_formatted_text(
    capsys: pytest.CaptureFixture[str],
) -> None:
    summary = _make_summary()

    shdc_odin.print_generation_summary(summary)

    assert capsys.readouterr().out == shdc_odin.format_generation_summary(summary)


def test_format_slangs_table_lists_in_enumeration_order() -> None:
    lines = shdc_odin.format_slangs_table().splitlines()

    names = [line.split()[0] for line in lines[3:] if line.strip()]
    assert names == [slang.name for slang in shdc_odin.SLANGS]
