import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import shdc_odin  # noqa: E402

VS_SOURCE = "#version 330\nuniform vec4 vs_params[4];\nvoid main() {}\n"
FS_SOURCE = "#version 330\n/* tint */\nvoid main() {}\n"


def vs_reflection() -> shdc_odin.StageReflection:
    return shdc_odin.StageReflection(
        stage="vs",
        entry_point="main",
        inputs=(
            shdc_odin.Attr(slot=0, name="position", sem_name="TEXCOORD", sem_index=0),
            shdc_odin.Attr(slot=1, name="texcoord0", sem_name="TEXCOORD", sem_index=1),
            shdc_odin.Attr(slot=-1, name="unused", sem_name="TEXCOORD", sem_index=2),
        ),
        uniform_blocks=(
            shdc_odin.UniformBlock(
                slot=0,
                size=64,
                struct_name="vs_params",
                inst_name="_21",
                uniforms=(shdc_odin.Uniform(name="mvp", type="mat4", offset=0),),
                flattened=True,
            ),
        ),
    )


def fs_reflection() -> shdc_odin.StageReflection:
    return shdc_odin.StageReflection(
        stage="fs",
        entry_point="main",
        uniform_blocks=(
            shdc_odin.UniformBlock(
                slot=1,
                size=32,
                struct_name="fs_params",
                inst_name="_54",
                uniforms=(
                    shdc_odin.Uniform(name="tint", type="vec4", offset=0),
                    shdc_odin.Uniform(name="strength", type="float", offset=16),
                ),
            ),
        ),
        images=(shdc_odin.Image(slot=0, name="tex"),),
        samplers=(shdc_odin.Sampler(slot=0, name="smp"),),
        image_samplers=(
            shdc_odin.ImageSampler(
                slot=0, name="tex_smp", image_name="tex", sampler_name="smp"
            ),
        ),
    )


@pytest.fixture
def shader_input() -> shdc_odin.ShaderInput:
    return shdc_odin.ShaderInput(
        base_path="shd/textured.glsl",
        module="tex",
        snippets=(
            shdc_odin.Snippet(name="util", stage="block"),
            shdc_odin.Snippet(name="vs", stage="vs"),
            shdc_odin.Snippet(name="fs", stage="fs"),
        ),
        programs=(shdc_odin.Program(name="textured", vs_name="vs", fs_name="fs", line=40),),
    )


@pytest.fixture
def make_backend() -> Callable[..., shdc_odin.BackendOutput]:
    def _make_backend(
        slang_name: str,
        *,
        bytecode: dict[str, bytes] | None = None,
        omit: tuple[str, ...] = (),
        fs: shdc_odin.StageReflection | None = None,
    ) -> shdc_odin.BackendOutput:
        sources = []
        if "vs" not in omit:
            sources.append(shdc_odin.StageSource("vs", VS_SOURCE, vs_reflection()))
        if "fs" not in omit:
            sources.append(
                shdc_odin.StageSource("fs", FS_SOURCE, fs or fs_reflection())
            )
        blobs = tuple(
            shdc_odin.BytecodeBlob(snippet_name=name, data=data)
            for name, data in (bytecode or {}).items()
        )
        return shdc_odin.BackendOutput(
            slang=shdc_odin.SLANG_BY_NAME[slang_name],
            sources=tuple(sources),
            blobs=blobs,
        )

    return _make_backend


@pytest.fixture
def make_backends(
    make_backend: Callable[..., shdc_odin.BackendOutput],
) -> Callable[..., dict[str, shdc_odin.BackendOutput]]:
    def _make_backends(*slang_names: str) -> dict[str, shdc_odin.BackendOutput]:
        return {name: make_backend(name) for name in slang_names}

    return _make_backends


@pytest.fixture
def make_emit_config() -> Callable[..., shdc_odin.EmitConfig]:
    def _make_emit_config(*slang_names: str, **overrides: object) -> shdc_odin.EmitConfig:
        return shdc_odin.EmitConfig(
            slangs=tuple(shdc_odin.SLANG_BY_NAME[name] for name in slang_names),
            **overrides,
        )

    return _make_emit_config


@pytest.fixture
def make_args(tmp_path: Path) -> Callable[..., argparse.Namespace]:
    reflection = tmp_path / "shader.refl.json"
    reflection.write_text("{}\n", encoding="utf-8")

    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "input": reflection,
            "output": tmp_path / "shader.odin",
            "slang": "glsl330",
            "module": None,
            "ctype": None,
            "genver": 1,
            "errfmt": "gcc",
            "list_slangs": False,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args
