"""Odin shader module generator for sokol-shdc reflection output.

Turns per-backend shader reflection (vertex attributes, uniform blocks,
images, samplers, image-sampler pairs) plus compiled bytecode or
cross-compiled source into a single Odin source file for the sokol-odin
bindings: bind slot constants, uniform block structs, embedded shader
payloads and one `<program>_shader_desc` procedure per shader program.

Usage:
    python shdc_odin.py --input triangle.refl.json --output triangle.odin \\
        --slang glsl330:hlsl5:metal_macos
"""

import os
import argparse
import dataclasses
import json
import re
import stat
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from collections.abc import Iterator, Mapping
from typing import NamedTuple

GENERATOR_NAME = "shdc-odin-gen"
DEFAULT_GEN_VERSION = 1


# ===--- Shading languages ---=== #


class Slang(NamedTuple):
    """One target shading language variant.

    Attributes:
        name: Command line name, also used as suffix of embedded array names.
        family: One of SLANG_FAMILIES; selects the StageEmitter.
        backend: sg.Backend enum value used as dispatch case label.
        version: HLSL shader model major version, 0 for other families.
    """

    name: str
    family: str
    backend: str
    version: int = 0

    def __str__(self) -> str:
        return self.name


SLANG_FAMILIES: tuple[str, ...] = ("glsl", "hlsl", "metal", "wgsl")

SLANGS: tuple[Slang, ...] = (
    Slang("glsl330", "glsl", ".GLCORE33"),
    Slang("glsl100", "glsl", ".GLES3"),
    Slang("glsl300es", "glsl", ".GLES3"),
    Slang("hlsl4", "hlsl", ".D3D11", 4),
    Slang("hlsl5", "hlsl", ".D3D11", 5),
    Slang("metal_macos", "metal", ".METAL_MACOS"),
    Slang("metal_ios", "metal", ".METAL_IOS"),
    Slang("metal_sim", "metal", ".METAL_SIMULATOR"),
    Slang("wgsl", "wgsl", ".WGPU"),
)
"""Enumeration order of all supported slangs.

Every per-backend loop in the generator runs in this order, regardless of
the order slangs were requested in."""

SLANG_BY_NAME: dict[str, Slang] = {slang.name: slang for slang in SLANGS}


def sort_slangs(slangs) -> tuple[Slang, ...]:
    """Deduplicate and sort slangs into enumeration order."""
    return tuple(sorted(set(slangs), key=SLANGS.index))


def find_backend_collision(slangs) -> tuple[Slang, Slang] | None:
    """Return the first pair of slangs that share one backend identifier."""
    seen: dict[str, Slang] = {}
    for slang in sort_slangs(slangs):
        other = seen.get(slang.backend)
        if other is not None:
            return other, slang
        seen[slang.backend] = slang
    return None


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    input: Path
    output: Path
    slangs: tuple[Slang, ...]
    module: str | None
    ctypes: tuple[tuple[str, str], ...]
    gen_version: int
    errfmt: str
    cmdline: str


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str


VALID_ERROR_CODES = {
    "MISSING_SLANG",
    "INVALID_SLANG",
    "DUPLICATE_BACKEND",
    "INVALID_CTYPE",
    "INVALID_MODULE_NAME",
    "INVALID_INPUT",
    "MISSING_OUTPUT",
    "PATH_NOT_FOUND",
    "CONFLICT_GENERATE_DISCOVERY",
}
ERROR_FORMATS: tuple[str, ...] = ("gcc", "msvc")
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def parse_slangs(raw: str | None) -> tuple[Slang, ...]:
    if not raw:
        raise ConfigError(
            "MISSING_SLANG",
            "No target shading language given.",
            "Pass --slang with a colon-separated list, e.g. --slang glsl330:hlsl5.",
        )

    slangs: list[Slang] = []
    for name in raw.split(":"):
        slang = SLANG_BY_NAME.get(name)
        if slang is None:
            raise ConfigError(
                "INVALID_SLANG",
                f"Unknown shading language: {name!r}",
                f"Use one of: {', '.join(SLANG_BY_NAME)}.",
            )
        slangs.append(slang)

    collision = find_backend_collision(slangs)
    if collision is not None:
        other, slang = collision
        raise ConfigError(
            "DUPLICATE_BACKEND",
            f"Shading languages {other.name} and {slang.name} both map to "
            f"backend {slang.backend}.",
            "Generate one file per conflicting shading language.",
        )
    return sort_slangs(slangs)


def parse_ctype(raw: str) -> tuple[str, str]:
    type_name, sep, host_name = raw.partition("=")
    if not sep or type_name not in UNIFORM_TYPES or not host_name:
        raise ConfigError(
            "INVALID_CTYPE",
            f"Invalid ctype mapping: {raw!r}",
            f"Use TYPE=NAME where TYPE is one of: {', '.join(UNIFORM_TYPES)}.",
        )
    return type_name, host_name


def validate_module_name(name: str) -> str:
    if _IDENT_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_MODULE_NAME",
        f"Invalid module name: {name!r}",
        "Module names are used as identifier prefix and must match [A-Za-z_][A-Za-z0-9_]*.",
    )


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a sokol-odin shader module from shader reflection"
    )

    parser.add_argument("--input", type=Path, default=None)
    parser.add_argument("--output", type=Path, default=None)
    parser.add_argument("--slang", type=str, default=None)
    parser.add_argument("--module", type=str, default=None)
    parser.add_argument("--ctype", action="append", default=None)
    parser.add_argument("--genver", type=int, default=DEFAULT_GEN_VERSION)
    parser.add_argument("--errfmt", choices=ERROR_FORMATS, default="gcc")

    parser.add_argument("--list-slangs", action="store_true", default=False)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(
    args: argparse.Namespace, cmdline: str = ""
) -> GenerateConfig | DiscoveryConfig:
    has_generate_input = bool(
        args.input or args.output or args.slang or args.module or args.ctype
    )

    if args.list_slangs:
        if has_generate_input:
            raise ConfigError(
                "CONFLICT_GENERATE_DISCOVERY",
                "--list-slangs cannot be combined with generation flags.",
                "Run --list-slangs on its own.",
            )
        return DiscoveryConfig(command="list-slangs")

    slangs = parse_slangs(args.slang)
    input_path = validate_path_exists(args.input, "--input")
    if args.output is None:
        raise ConfigError(
            "MISSING_OUTPUT",
            "--output is required: no path provided.",
            "Pass the destination file: --output shader.odin",
        )

    module = None
    if args.module is not None:
        module = validate_module_name(args.module)

    ctypes = tuple(parse_ctype(raw) for raw in (args.ctype or ()))

    return GenerateConfig(
        input=input_path,
        output=args.output,
        slangs=slangs,
        module=module,
        ctypes=ctypes,
        gen_version=args.genver,
        errfmt=args.errfmt,
        cmdline=cmdline,
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    if argv is None:
        argv = sys.argv[1:]
    return validate_config(parse_args(argv), cmdline=" ".join(argv))


# ===--- Diagnostics ---=== #

VALID_GENERATE_ERROR_CODES = {
    "REFLECTION_INCONSISTENCY",
    "UNRESOLVED_REFERENCE",
    "UNSUPPORTED_TYPE",
    "DESTINATION_WRITE_FAILURE",
}


@dataclass(frozen=True)
class Diagnostic:
    """One error or warning raised while generating a module.

    Attributes:
        code: One of VALID_GENERATE_ERROR_CODES.
        message: Human-readable description.
        file: Location the diagnostic refers to (shader input or output path).
        line: Line in file, 0 when unknown.
        severity: "error" for fatal conditions, "warning" otherwise.
    """

    code: str
    message: str
    file: str
    line: int = 0
    severity: str = "error"

    def __post_init__(self) -> None:
        if self.code not in VALID_GENERATE_ERROR_CODES:
            raise ValueError(f"Unknown generate error code: {self.code}")
        if self.severity not in ("error", "warning"):
            raise ValueError(f"Unknown diagnostic severity: {self.severity}")

    def format(self, errfmt: str = "gcc") -> str:
        if errfmt == "msvc":
            return f"{self.file}({self.line}): {self.severity}: {self.message}"
        return f"{self.file}:{self.line}:0: {self.severity}: {self.message}"


class GenerateError(Exception):
    def __init__(self, diagnostic: Diagnostic):
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic
        self.code = diagnostic.code


# ===--- Reflection model ---=== #

MAX_VERTEX_ATTRS = 16
MAX_UNIFORM_BLOCKS = 4
MAX_IMAGES = 12
MAX_SAMPLERS = 8
MAX_IMAGE_SAMPLER_PAIRS = 12

STAGE_VS = "vs"
STAGE_FS = "fs"


@dataclass(frozen=True)
class Attr:
    slot: int
    name: str
    sem_name: str = "TEXCOORD"
    sem_index: int = 0


@dataclass(frozen=True)
class Uniform:
    name: str
    type: str
    offset: int
    array_count: int = 1


@dataclass(frozen=True)
class UniformBlock:
    slot: int
    size: int
    struct_name: str
    inst_name: str
    uniforms: tuple[Uniform, ...] = ()
    flattened: bool = False

    @property
    def name(self) -> str:
        return self.struct_name


@dataclass(frozen=True)
class Image:
    slot: int
    name: str
    type: str = "2d"
    sample_type: str = "float"
    multisampled: bool = False


@dataclass(frozen=True)
class Sampler:
    slot: int
    name: str
    type: str = "sample"


@dataclass(frozen=True)
class ImageSampler:
    slot: int
    name: str
    image_name: str
    sampler_name: str


@dataclass(frozen=True)
class StageReflection:
    stage: str
    entry_point: str = "main"
    inputs: tuple[Attr, ...] = ()
    uniform_blocks: tuple[UniformBlock, ...] = ()
    images: tuple[Image, ...] = ()
    samplers: tuple[Sampler, ...] = ()
    image_samplers: tuple[ImageSampler, ...] = ()


@dataclass(frozen=True)
class StageSource:
    """Cross-compiled source and reflection of one snippet for one slang."""

    snippet_name: str
    source_code: str
    reflection: StageReflection


@dataclass(frozen=True)
class BytecodeBlob:
    snippet_name: str
    data: bytes


@dataclass(frozen=True)
class BackendOutput:
    """Everything the upstream compiler produced for one slang.

    Attributes:
        slang: Shading language these sources were translated to.
        sources: One StageSource per vertex/fragment snippet.
        blobs: Optional precompiled bytecode, at most one per snippet.
    """

    slang: Slang
    sources: tuple[StageSource, ...] = ()
    blobs: tuple[BytecodeBlob, ...] = ()

    def find_source(self, snippet_name: str) -> StageSource | None:
        for src in self.sources:
            if src.snippet_name == snippet_name:
                return src
        return None

    def find_blob(self, snippet_name: str) -> BytecodeBlob | None:
        for blob in self.blobs:
            if blob.snippet_name == snippet_name:
                return blob
        return None


@dataclass(frozen=True)
class Snippet:
    name: str
    stage: str


@dataclass(frozen=True)
class Program:
    name: str
    vs_name: str
    fs_name: str
    line: int = 0


@dataclass(frozen=True)
class ShaderInput:
    """Backend-independent description of one annotated shader file.

    Attributes:
        base_path: Path of the shader source, used as diagnostic location.
        module: Module name; prefixes every generated identifier when set.
        snippets: All snippets in declaration order. Only "vs" and "fs"
            snippets are embedded, other kinds (e.g. "block") are skipped.
        programs: Shader programs pairing one vertex and one fragment snippet.
    """

    base_path: str
    module: str = ""
    snippets: tuple[Snippet, ...] = ()
    programs: tuple[Program, ...] = ()

    @property
    def sorted_programs(self) -> tuple[Program, ...]:
        return tuple(sorted(self.programs, key=lambda prog: prog.name))

    @property
    def shader_snippets(self) -> tuple[Snippet, ...]:
        return tuple(s for s in self.snippets if s.stage in (STAGE_VS, STAGE_FS))


# ===--- Slot registry ---=== #

RESOURCE_KINDS: dict[str, tuple[str, int]] = {
    "attr": ("inputs", MAX_VERTEX_ATTRS),
    "uniform_block": ("uniform_blocks", MAX_UNIFORM_BLOCKS),
    "image": ("images", MAX_IMAGES),
    "sampler": ("samplers", MAX_SAMPLERS),
    "image_sampler": ("image_samplers", MAX_IMAGE_SAMPLER_PAIRS),
}


class ReflectionLookupError(LookupError):
    def __init__(self, kind: str, name: str):
        super().__init__(f"no {kind.replace('_', ' ')} named '{name}'")
        self.kind = kind
        self.name = name


def _resources(reflection: StageReflection, kind: str) -> tuple:
    try:
        attr_name, _bound = RESOURCE_KINDS[kind]
    except KeyError:
        raise ValueError(f"Unknown resource kind: {kind}") from None
    return getattr(reflection, attr_name)


def find_by_slot(reflection: StageReflection, kind: str, slot: int):
    if slot < 0:
        return None
    for res in _resources(reflection, kind):
        if res.slot == slot:
            return res
    return None


def find_by_name(reflection: StageReflection, kind: str, name: str):
    for res in _resources(reflection, kind):
        if res.name == name:
            return res
    raise ReflectionLookupError(kind, name)


def iter_slots(reflection: StageReflection, kind: str) -> Iterator[tuple[int, object]]:
    """Yield (slot, resource) for every occupied slot of kind, ascending.

    Only slots below the fixed per-kind bound are visited; resources
    outside the bound and unused (negative) slots are never yielded.
    """
    _attr_name, bound = RESOURCE_KINDS[kind]
    for slot in range(bound):
        res = find_by_slot(reflection, kind, slot)
        if res is not None:
            yield slot, res


# ===--- Naming helpers ---=== #


def mod_prefix(inp: ShaderInput) -> str:
    return f"{inp.module}_" if inp.module else ""


def to_ada_case(name: str) -> str:
    """Convert snake_case to Ada_Case, e.g. "vs_params" -> "Vs_Params"."""
    return "_".join(part[:1].upper() + part[1:].lower() for part in name.split("_"))


def roundup(value: int, round_to: int) -> int:
    return (value + (round_to - 1)) & ~(round_to - 1)


def replace_comment_tokens(line: str) -> str:
    return line.replace("/*", "/_").replace("*/", "_/")


def bool_literal(value: bool) -> str:
    return "true" if value else "false"


# ===--- Type tags ---=== #

UNIFORM_TYPES: tuple[str, ...] = (
    "float",
    "vec2",
    "vec3",
    "vec4",
    "int",
    "ivec2",
    "ivec3",
    "ivec4",
    "mat4",
)
INT_UNIFORM_TYPES = {"int", "ivec2", "ivec3", "ivec4"}

INVALID_TAG = "INVALID"
INVALID_UNIFORM_TYPE = "INVALID_UNIFORM_TYPE"

UNIFORM_DESC_TYPES = {
    "float": ".FLOAT",
    "vec2": ".FLOAT2",
    "vec3": ".FLOAT3",
    "vec4": ".FLOAT4",
    "int": ".INT",
    "ivec2": ".INT2",
    "ivec3": ".INT3",
    "ivec4": ".INT4",
    "mat4": ".MAT4",
}
IMAGE_TYPES = {
    "2d": "._2D",
    "cube": ".CUBE",
    "3d": "._3D",
    "array": ".ARRAY",
}
IMAGE_SAMPLE_TYPES = {
    "float": ".FLOAT",
    "depth": ".DEPTH",
    "sint": ".SINT",
    "uint": ".UINT",
}
SAMPLER_TYPES = {
    "sample": ".SAMPLE",
    "compare": ".COMPARE",
}


def sokol_tag(table: Mapping[str, str], value: str) -> str:
    return table.get(value, INVALID_TAG)


def flattened_uniform_desc_type(uniform_type: str) -> str:
    """Element type of the vec4 array a flattened uniform block is bound as."""
    if uniform_type in INT_UNIFORM_TYPES:
        return ".INT4"
    if uniform_type in UNIFORM_DESC_TYPES:
        return ".FLOAT4"
    return INVALID_TAG


# ===--- Uniform block layout ---=== #

_UNIFORM_ELEMENT_SIZES = {
    "float": 4,
    "vec2": 8,
    "vec3": 12,
    "vec4": 16,
    "int": 4,
    "ivec2": 8,
    "ivec3": 12,
    "ivec4": 16,
    "mat4": 64,
}

_ODIN_UNIFORM_TYPES = {
    "float": "f32",
    "vec2": "[2]f32",
    "vec3": "[3]f32",
    "vec4": "[4]f32",
    "int": "i32",
    "ivec2": "[2]i32",
    "ivec3": "[3]i32",
    "ivec4": "[4]i32",
    "mat4": "[16]f32",
}


class LayoutPadding(NamedTuple):
    size: int


class LayoutField(NamedTuple):
    name: str
    uniform_type: str
    array_count: int
    odin_type: str | None
    size: int


class BlockLayout(NamedTuple):
    segments: tuple[LayoutPadding | LayoutField, ...]
    size: int

    @property
    def fields(self) -> tuple[LayoutField, ...]:
        return tuple(s for s in self.segments if isinstance(s, LayoutField))

    @property
    def paddings(self) -> tuple[LayoutPadding, ...]:
        return tuple(s for s in self.segments if isinstance(s, LayoutPadding))

    @property
    def unsupported(self) -> tuple[LayoutField, ...]:
        return tuple(f for f in self.fields if f.odin_type is None)


def uniform_size(uniform_type: str, array_count: int) -> int:
    """Return the std140 byte size of a uniform.

    Array elements of scalar and vector types occupy a full vec4 slot, so an
    array of N floats takes 16*N bytes, the same as an array of N vec4.
    Unknown types have size 0.
    """
    elem_size = _UNIFORM_ELEMENT_SIZES.get(uniform_type)
    if elem_size is None:
        return 0
    if array_count > 1:
        return max(elem_size, 16) * array_count
    return elem_size


def odin_type_for_uniform(
    uniform: Uniform, ctype_map: Mapping[str, str] | None = None
) -> str | None:
    if ctype_map and uniform.type in ctype_map:
        host_type = ctype_map[uniform.type]
        if uniform.array_count == 1:
            return host_type
        # array elements are padded to the 16 byte std140 stride
        elem_size = _UNIFORM_ELEMENT_SIZES.get(uniform.type, 16)
        if elem_size % 16 == 0:
            return f"[{uniform.array_count}]{host_type}"
        pad = 16 - elem_size
        return f"[{uniform.array_count}]struct {{ v: {host_type}, _: [{pad}]u8 }}"

    if uniform.type not in _ODIN_UNIFORM_TYPES:
        return None
    if uniform.array_count == 1:
        return _ODIN_UNIFORM_TYPES[uniform.type]
    if uniform.type == "mat4":
        return f"[{uniform.array_count}][16]f32"
    elem = "i32" if uniform.type in INT_UNIFORM_TYPES else "f32"
    return f"[{uniform.array_count}][4]{elem}"


def compute_layout(
    block: UniformBlock, ctype_map: Mapping[str, str] | None = None
) -> BlockLayout:
    """Compute the field and padding sequence of a uniform block struct.

    Walks the uniforms in declaration order with a byte cursor. A gap
    between the cursor and the next uniform offset becomes a padding
    segment; after the last uniform the struct is padded to a multiple of
    16 bytes.

    Args:
        block: Uniform block reflection.
        ctype_map: Optional uniform type -> host type name overrides.

    Returns:
        BlockLayout whose segment sizes sum to BlockLayout.size.
    """
    segments: list[LayoutPadding | LayoutField] = []
    cursor = 0
    for uniform in block.uniforms:
        if uniform.offset > cursor:
            segments.append(LayoutPadding(uniform.offset - cursor))
            cursor = uniform.offset
        size = uniform_size(uniform.type, uniform.array_count)
        segments.append(
            LayoutField(
                name=uniform.name,
                uniform_type=uniform.type,
                array_count=uniform.array_count,
                odin_type=odin_type_for_uniform(uniform, ctype_map),
                size=size,
            )
        )
        cursor += size

    round16 = roundup(cursor, 16)
    if cursor != round16:
        segments.append(LayoutPadding(round16 - cursor))
    return BlockLayout(segments=tuple(segments), size=round16)


def format_uniform_block_struct(
    prefix: str, block: UniformBlock, ctype_map: Mapping[str, str] | None = None
) -> list[str]:
    lines = [
        f"SLOT_{prefix}{block.struct_name} :: {block.slot}",
        f"{to_ada_case(prefix + block.struct_name)} :: struct {{",
    ]
    for segment in compute_layout(block, ctype_map).segments:
        if isinstance(segment, LayoutPadding):
            lines.append(f"    _: [{segment.size}]u8,")
        elif segment.odin_type is None:
            lines.append(f"    {INVALID_UNIFORM_TYPE},")
        else:
            lines.append(f"    {segment.name}: {segment.odin_type},")
    lines.append("}")
    return lines


# ===--- Byte embedding ---=== #

BYTES_PER_LINE = 16


def source_payload(source_code: str) -> bytes:
    """UTF-8 bytes of source_code followed by exactly one zero terminator."""
    return source_code.encode("utf-8") + b"\0"


def embed_bytes(data: bytes, indent: str = "    ") -> list[str]:
    lines: list[str] = []
    for start in range(0, len(data), BYTES_PER_LINE):
        chunk = data[start : start + BYTES_PER_LINE]
        lines.append(indent + "".join(f"{byte:#04x}," for byte in chunk))
    return lines


def format_payload_array(name: str, data: bytes) -> list[str]:
    lines = ["@(private)", f"{name} := [{len(data)}]u8 {{"]
    lines.extend(embed_bytes(data))
    lines.append("}")
    return lines


def format_source_comment(source_code: str) -> list[str]:
    lines = ["/*"]
    for line in source_code.splitlines():
        lines.append(f"   {replace_comment_tokens(line)}".rstrip())
    lines.append("*/")
    return lines


@dataclass(frozen=True)
class StagePayload:
    """The embedded array backing one shader stage of one slang.

    Attributes:
        array_name: Odin identifier of the embedded byte array.
        data: Exact bytes of the array (bytecode, or source plus terminator).
        is_bytecode: True when data is a precompiled bytecode blob.
    """

    array_name: str
    data: bytes
    is_bytecode: bool


def payload_for(prefix: str, snippet_name: str, backend: BackendOutput) -> StagePayload:
    """Select bytecode when the backend has a blob for snippet, else source.

    Raises:
        LookupError: Neither a blob nor a source exists for snippet_name
            (callers run check_errors first).
    """
    blob = backend.find_blob(snippet_name)
    if blob is not None:
        return StagePayload(
            array_name=f"{prefix}{snippet_name}_bytecode_{backend.slang.name}",
            data=blob.data,
            is_bytecode=True,
        )
    src = backend.find_source(snippet_name)
    if src is None:
        raise LookupError(f"no {backend.slang.name} source for snippet '{snippet_name}'")
    return StagePayload(
        array_name=f"{prefix}{snippet_name}_source_{backend.slang.name}",
        data=source_payload(src.source_code),
        is_bytecode=False,
    )


# ===--- Stage emitters ---=== #


class StageEmitter:
    """Emits sg.Shader_Desc population statements for one slang.

    Subclasses override the hooks that differ between shading language
    families; format_stage and format_shader_desc_init hold the shared
    emission order.
    """

    family = ""

    def __init__(self, slang: Slang):
        if slang.family != self.family:
            raise ValueError(
                f"{type(self).__name__} cannot emit for {slang.family} slang {slang.name}"
            )
        self.slang = slang

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.slang.name}>"

    # Family hooks.

    def format_attr(self, indent: str, slot: int, attr: Attr) -> list[str]:
        return []

    def format_uniforms(
        self, indent: str, stage_name: str, slot: int, block: UniformBlock
    ) -> list[str]:
        return []

    def format_image_sampler_name(
        self, indent: str, stage_name: str, slot: int, pair: ImageSampler
    ) -> list[str]:
        return []

    def source_target(self, stage_name: str) -> str | None:
        return None

    # Shared emission.

    def format_stage(
        self, indent: str, stage_name: str, src: StageSource, payload: StagePayload
    ) -> list[str]:
        refl = src.reflection
        stage = f"{indent}desc.{stage_name}"
        lines: list[str] = []
        if payload.is_bytecode:
            lines.append(f"{stage}.bytecode.ptr = &{payload.array_name}")
            lines.append(f"{stage}.bytecode.size = {len(payload.data)}")
        else:
            lines.append(f"{stage}.source = transmute(cstring)&{payload.array_name}")
            target = self.source_target(stage_name)
            if target:
                lines.append(f'{stage}.d3d11_target = "{target}"')
        lines.append(f'{stage}.entry = "{refl.entry_point}"')

        for slot, block in iter_slots(refl, "uniform_block"):
            ub = f"{stage}.uniform_blocks[{slot}]"
            lines.append(f"{ub}.size = {roundup(block.size, 16)}")
            lines.append(f"{ub}.layout = .STD140")
            lines.extend(self.format_uniforms(indent, stage_name, slot, block))

        for slot, img in iter_slots(refl, "image"):
            prefix = f"{stage}.images[{slot}]"
            lines.append(f"{prefix}.used = true")
            lines.append(f"{prefix}.multisampled = {bool_literal(img.multisampled)}")
            lines.append(f"{prefix}.image_type = {sokol_tag(IMAGE_TYPES, img.type)}")
            lines.append(
                f"{prefix}.sample_type = {sokol_tag(IMAGE_SAMPLE_TYPES, img.sample_type)}"
            )

        for slot, smp in iter_slots(refl, "sampler"):
            prefix = f"{stage}.samplers[{slot}]"
            lines.append(f"{prefix}.used = true")
            lines.append(f"{prefix}.sampler_type = {sokol_tag(SAMPLER_TYPES, smp.type)}")

        for slot, pair in iter_slots(refl, "image_sampler"):
            image = find_by_name(refl, "image", pair.image_name)
            sampler = find_by_name(refl, "sampler", pair.sampler_name)
            prefix = f"{stage}.image_sampler_pairs[{slot}]"
            lines.append(f"{prefix}.used = true")
            lines.append(f"{prefix}.image_slot = {image.slot}")
            lines.append(f"{prefix}.sampler_slot = {sampler.slot}")
            lines.extend(self.format_image_sampler_name(indent, stage_name, slot, pair))
        return lines

    def format_shader_desc_init(
        self, indent: str, prefix: str, program: Program, backend: BackendOutput
    ) -> list[str]:
        vs_src = backend.find_source(program.vs_name)
        fs_src = backend.find_source(program.fs_name)
        if vs_src is None or fs_src is None:
            raise LookupError(
                f"program '{program.name}' has no {self.slang.name} reflection"
            )

        lines: list[str] = []
        for slot, attr in iter_slots(vs_src.reflection, "attr"):
            lines.extend(self.format_attr(indent, slot, attr))
        lines.extend(
            self.format_stage(
                indent, STAGE_VS, vs_src, payload_for(prefix, program.vs_name, backend)
            )
        )
        lines.extend(
            self.format_stage(
                indent, STAGE_FS, fs_src, payload_for(prefix, program.fs_name, backend)
            )
        )
        lines.append(f'{indent}desc.label = "{prefix}{program.name}_shader"')
        return lines


class GlslStageEmitter(StageEmitter):
    """GLSL binds attributes and uniforms by name and has no separate samplers."""

    family = "glsl"

    def format_attr(self, indent: str, slot: int, attr: Attr) -> list[str]:
        return [f'{indent}desc.attrs[{slot}].name = "{attr.name}"']

    def format_uniforms(
        self, indent: str, stage_name: str, slot: int, block: UniformBlock
    ) -> list[str]:
        if not block.uniforms:
            return []
        ub = f"{indent}desc.{stage_name}.uniform_blocks[{slot}]"
        if block.flattened:
            elem_type = flattened_uniform_desc_type(block.uniforms[0].type)
            return [
                f'{ub}.uniforms[0].name = "{block.struct_name}"',
                f"{ub}.uniforms[0].type = {elem_type}",
                f"{ub}.uniforms[0].array_count = {roundup(block.size, 16) // 16}",
            ]
        lines: list[str] = []
        for index, uniform in enumerate(block.uniforms):
            u = f"{ub}.uniforms[{index}]"
            lines.append(f'{u}.name = "{block.inst_name}.{uniform.name}"')
            lines.append(f"{u}.type = {sokol_tag(UNIFORM_DESC_TYPES, uniform.type)}")
            lines.append(f"{u}.array_count = {uniform.array_count}")
        return lines

    def format_image_sampler_name(
        self, indent: str, stage_name: str, slot: int, pair: ImageSampler
    ) -> list[str]:
        return [
            f'{indent}desc.{stage_name}.image_sampler_pairs[{slot}].glsl_name = "{pair.name}"'
        ]


class HlslStageEmitter(StageEmitter):
    family = "hlsl"

    def format_attr(self, indent: str, slot: int, attr: Attr) -> list[str]:
        return [
            f'{indent}desc.attrs[{slot}].sem_name = "{attr.sem_name}"',
            f"{indent}desc.attrs[{slot}].sem_index = {attr.sem_index}",
        ]

    def source_target(self, stage_name: str) -> str | None:
        stage = "vs" if stage_name == STAGE_VS else "ps"
        return f"{stage}_{self.slang.version}_0"


class MetalStageEmitter(StageEmitter):
    family = "metal"


class WgslStageEmitter(StageEmitter):
    family = "wgsl"


STAGE_EMITTERS: dict[str, type[StageEmitter]] = {
    "glsl": GlslStageEmitter,
    "hlsl": HlslStageEmitter,
    "metal": MetalStageEmitter,
    "wgsl": WgslStageEmitter,
}


def stage_emitter_for(slang: Slang) -> StageEmitter:
    try:
        emitter_type = STAGE_EMITTERS[slang.family]
    except KeyError:
        raise ValueError(f"No stage emitter for slang family: {slang.family}") from None
    return emitter_type(slang)


# ===--- Validation ---=== #


def check_errors(inp: ShaderInput, slang: Slang, backend: BackendOutput | None) -> None:
    """Verify one backend's output is complete before anything is emitted.

    Raises:
        GenerateError: REFLECTION_INCONSISTENCY when the backend output, a
            program's vertex/fragment reflection or an embedded snippet's
            source is missing (or has the wrong stage); UNRESOLVED_REFERENCE
            when an image-sampler pair names an unknown image or sampler.
    """
    if backend is None:
        raise GenerateError(
            Diagnostic(
                "REFLECTION_INCONSISTENCY",
                f"no reflection output for shading language '{slang.name}'",
                inp.base_path,
            )
        )

    stage_labels = {STAGE_VS: "vertex", STAGE_FS: "fragment"}
    for prog in inp.sorted_programs:
        for stage, snippet_name in ((STAGE_VS, prog.vs_name), (STAGE_FS, prog.fs_name)):
            src = backend.find_source(snippet_name)
            if src is None:
                raise GenerateError(
                    Diagnostic(
                        "REFLECTION_INCONSISTENCY",
                        f"no {slang.name} reflection for {stage_labels[stage]} shader "
                        f"'{snippet_name}' of program '{prog.name}'",
                        inp.base_path,
                        prog.line,
                    )
                )
            if src.reflection.stage != stage:
                raise GenerateError(
                    Diagnostic(
                        "REFLECTION_INCONSISTENCY",
                        f"shader '{snippet_name}' of program '{prog.name}' is used as "
                        f"{stage_labels[stage]} shader but reflected as "
                        f"'{src.reflection.stage}' ({slang.name})",
                        inp.base_path,
                        prog.line,
                    )
                )

    for snippet in inp.shader_snippets:
        src = backend.find_source(snippet.name)
        if src is None:
            raise GenerateError(
                Diagnostic(
                    "REFLECTION_INCONSISTENCY",
                    f"no {slang.name} reflection for shader '{snippet.name}'",
                    inp.base_path,
                )
            )
        refl = src.reflection
        for pair in refl.image_samplers:
            try:
                find_by_name(refl, "image", pair.image_name)
                find_by_name(refl, "sampler", pair.sampler_name)
            except ReflectionLookupError as err:
                raise GenerateError(
                    Diagnostic(
                        "UNRESOLVED_REFERENCE",
                        f"image-sampler pair '{pair.name}' in shader '{snippet.name}' "
                        f"({slang.name}): {err}",
                        inp.base_path,
                    )
                ) from err


def collect_unsupported_types(inp: ShaderInput, backend: BackendOutput) -> list[Diagnostic]:
    """Return one UNSUPPORTED_TYPE warning per unrecognized type tag."""
    problems: list[str] = []
    for snippet in inp.shader_snippets:
        src = backend.find_source(snippet.name)
        if src is None:
            continue
        refl = src.reflection
        for block in refl.uniform_blocks:
            for uniform in block.uniforms:
                if uniform.type not in UNIFORM_DESC_TYPES:
                    problems.append(
                        f"uniform '{block.struct_name}.{uniform.name}' has unsupported "
                        f"type '{uniform.type}'"
                    )
        for img in refl.images:
            if img.type not in IMAGE_TYPES:
                problems.append(f"image '{img.name}' has unsupported type '{img.type}'")
            if img.sample_type not in IMAGE_SAMPLE_TYPES:
                problems.append(
                    f"image '{img.name}' has unsupported sample type '{img.sample_type}'"
                )
        for smp in refl.samplers:
            if smp.type not in SAMPLER_TYPES:
                problems.append(f"sampler '{smp.name}' has unsupported type '{smp.type}'")

    return [
        Diagnostic(
            "UNSUPPORTED_TYPE",
            f"{problem} in {backend.slang.name} reflection",
            inp.base_path,
            severity="warning",
        )
        for problem in problems
    ]


# ===--- Module sections ---=== #


def _unique_by_name(inp: ShaderInput, backend: BackendOutput, kind: str) -> list:
    """Resources of kind across all snippets, first occurrence wins, by slot."""
    seen: dict[str, object] = {}
    for snippet in inp.shader_snippets:
        src = backend.find_source(snippet.name)
        if src is None:
            continue
        for res in _resources(src.reflection, kind):
            seen.setdefault(res.name, res)
    return sorted(seen.values(), key=lambda res: res.slot)


def unique_uniform_blocks(inp: ShaderInput, backend: BackendOutput) -> list[UniformBlock]:
    return _unique_by_name(inp, backend, "uniform_block")


def unique_images(inp: ShaderInput, backend: BackendOutput) -> list[Image]:
    return _unique_by_name(inp, backend, "image")


def unique_samplers(inp: ShaderInput, backend: BackendOutput) -> list[Sampler]:
    return _unique_by_name(inp, backend, "sampler")


def _format_stage_overview(
    prefix: str, snippet_name: str, refl: StageReflection, with_attrs: bool
) -> list[str]:
    ind = " " * 16
    lines: list[str] = []
    if with_attrs:
        lines.append(f"{ind}Attribute slots:")
        for slot, attr in iter_slots(refl, "attr"):
            lines.append(f"{ind}    ATTR_{prefix}{snippet_name}_{attr.name} = {slot}")
    for _slot, ub in iter_slots(refl, "uniform_block"):
        lines.append(f"{ind}Uniform block '{ub.struct_name}':")
        lines.append(f"{ind}    Odin struct: {to_ada_case(prefix + ub.struct_name)}")
        lines.append(f"{ind}    Bind slot: SLOT_{prefix}{ub.struct_name} = {ub.slot}")
    for _slot, img in iter_slots(refl, "image"):
        lines.append(f"{ind}Image '{img.name}':")
        lines.append(f"{ind}    Image Type: {sokol_tag(IMAGE_TYPES, img.type)}")
        lines.append(
            f"{ind}    Sample Type: {sokol_tag(IMAGE_SAMPLE_TYPES, img.sample_type)}"
        )
        lines.append(f"{ind}    Multisampled: {bool_literal(img.multisampled)}")
        lines.append(f"{ind}    Bind slot: SLOT_{prefix}{img.name} = {img.slot}")
    for _slot, smp in iter_slots(refl, "sampler"):
        lines.append(f"{ind}Sampler '{smp.name}':")
        lines.append(f"{ind}    Type: {sokol_tag(SAMPLER_TYPES, smp.type)}")
        lines.append(f"{ind}    Bind slot: SLOT_{prefix}{smp.name} = {smp.slot}")
    for _slot, pair in iter_slots(refl, "image_sampler"):
        lines.append(f"{ind}Image Sampler Pair '{pair.name}':")
        lines.append(f"{ind}    Image: {pair.image_name}")
        lines.append(f"{ind}    Sampler: {pair.sampler_name}")
    return lines


def format_header(
    inp: ShaderInput, backend: BackendOutput, config: "EmitConfig"
) -> list[str]:
    """Return the leading comment block plus verbatim header lines.

    The binding overview is derived from a single backend's reflection
    (the first requested slang) and is not repeated per backend.
    """
    prefix = mod_prefix(inp)
    lines = [
        "/*",
        f"    #version:{config.gen_version}# (machine generated, don't edit!)",
        "",
        f"    Generated by {GENERATOR_NAME}",
        "",
        f"    Cmdline: {config.cmdline}",
        "",
    ]
    lines.append("    Overview:")
    lines.append("")
    for prog in inp.sorted_programs:
        vs_src = backend.find_source(prog.vs_name)
        fs_src = backend.find_source(prog.fs_name)
        lines.append(f"        Shader program '{prog.name}':")
        lines.append(
            f"            Get shader desc: shd.{prefix}{prog.name}_shader_desc(sg.query_backend())"
        )
        lines.append(f"            Vertex shader: {prog.vs_name}")
        lines.extend(
            _format_stage_overview(prefix, prog.vs_name, vs_src.reflection, with_attrs=True)
        )
        lines.append(f"            Fragment shader: {prog.fs_name}")
        lines.extend(
            _format_stage_overview(prefix, prog.fs_name, fs_src.reflection, with_attrs=False)
        )
        lines.append("")
    lines.append("*/")
    lines.extend(config.headers)
    return lines


def format_vertex_attr_slots(inp: ShaderInput, backend: BackendOutput) -> list[str]:
    prefix = mod_prefix(inp)
    lines: list[str] = []
    for snippet in inp.shader_snippets:
        if snippet.stage != STAGE_VS:
            continue
        src = backend.find_source(snippet.name)
        for slot, attr in iter_slots(src.reflection, "attr"):
            lines.append(f"ATTR_{prefix}{snippet.name}_{attr.name} :: {slot}")
    return lines


def format_image_slots(inp: ShaderInput, backend: BackendOutput) -> list[str]:
    prefix = mod_prefix(inp)
    return [f"SLOT_{prefix}{img.name} :: {img.slot}" for img in unique_images(inp, backend)]


def format_sampler_slots(inp: ShaderInput, backend: BackendOutput) -> list[str]:
    prefix = mod_prefix(inp)
    return [
        f"SLOT_{prefix}{smp.name} :: {smp.slot}" for smp in unique_samplers(inp, backend)
    ]


def format_uniform_blocks(
    inp: ShaderInput, backend: BackendOutput, ctype_map: Mapping[str, str] | None = None
) -> list[str]:
    prefix = mod_prefix(inp)
    lines: list[str] = []
    for block in unique_uniform_blocks(inp, backend):
        lines.extend(format_uniform_block_struct(prefix, block, ctype_map))
    return lines


def format_shader_payloads(inp: ShaderInput, backend: BackendOutput) -> list[str]:
    """Embed every vertex/fragment snippet of one backend.

    Each snippet gets its translated source as a comment, followed by one
    private byte array: the bytecode blob when present, otherwise the
    source text plus a zero terminator.
    """
    prefix = mod_prefix(inp)
    lines: list[str] = []
    for snippet in inp.shader_snippets:
        src = backend.find_source(snippet.name)
        payload = payload_for(prefix, snippet.name, backend)
        lines.extend(format_source_comment(src.source_code))
        lines.extend(format_payload_array(payload.array_name, payload.data))
    return lines


def format_shader_desc_proc(
    inp: ShaderInput,
    program: Program,
    backends: Mapping[str, BackendOutput],
    slangs: tuple[Slang, ...],
) -> list[str]:
    """Return the `<program>_shader_desc` dispatch procedure.

    The switch holds exactly one case per requested slang, in enumeration
    order; unrequested backends fall through and return a zeroed desc.
    """
    prefix = mod_prefix(inp)
    lines = [
        f"{prefix}{program.name}_shader_desc :: proc (backend: sg.Backend) -> sg.Shader_Desc {{",
        "    desc: sg.Shader_Desc",
        "    #partial switch backend {",
    ]
    for slang in slangs:
        emitter = stage_emitter_for(slang)
        lines.append(f"        case {slang.backend}: {{")
        lines.extend(
            emitter.format_shader_desc_init(
                " " * 12, prefix, program, backends[slang.name]
            )
        )
        lines.append("        }")
    lines.append("    }")
    lines.append("    return desc")
    lines.append("}")
    return lines


# ===--- Module assembly ---=== #


@dataclass(frozen=True)
class EmitConfig:
    """Caller-supplied generation settings.

    Attributes:
        slangs: Requested shading languages, at least one. Sorted into
            enumeration order before use.
        ctype_map: Uniform type -> host type name overrides for struct fields.
        headers: Lines copied verbatim after the comment block (typically
            the Odin package clause and imports).
        gen_version: Version stamp written into the comment block.
        cmdline: Command line echoed into the comment block; written even when empty.
    """

    slangs: tuple[Slang, ...]
    ctype_map: Mapping[str, str] = field(default_factory=dict)
    headers: tuple[str, ...] = ()
    gen_version: int = DEFAULT_GEN_VERSION
    cmdline: str = ""


@dataclass(frozen=True)
class AssembledModule:
    source: str
    diagnostics: tuple[Diagnostic, ...]


def assemble_module_source(
    inp: ShaderInput, backends: Mapping[str, BackendOutput], config: EmitConfig
) -> AssembledModule:
    """Assemble the complete Odin module text for all requested slangs.

    Every requested backend is validated before any text is produced. The
    text is accumulated in a buffer owned by this call, so concurrent
    invocations never share state.

    Args:
        inp: Backend-independent shader input.
        backends: Backend outputs keyed by slang name. Entries for slangs
            that were not requested are ignored.
        config: Requested slangs and emission settings.

    Returns:
        AssembledModule with the module source (trailing newline included)
        and any UNSUPPORTED_TYPE warnings.

    Raises:
        ValueError: If config.slangs is empty or two requested slangs share
            one backend identifier.
        GenerateError: From check_errors on inconsistent reflection.
    """
    if not config.slangs:
        raise ValueError("at least one shading language must be requested")
    collision = find_backend_collision(config.slangs)
    if collision is not None:
        other, slang = collision
        raise ValueError(
            f"shading languages {other.name} and {slang.name} both map to "
            f"backend {slang.backend}"
        )
    slangs = sort_slangs(config.slangs)

    for slang in slangs:
        check_errors(inp, slang, backends.get(slang.name))

    first = backends[slangs[0].name]
    lines: list[str] = []
    lines.extend(format_header(inp, first, config))
    lines.extend(format_vertex_attr_slots(inp, first))
    lines.extend(format_image_slots(inp, first))
    lines.extend(format_sampler_slots(inp, first))
    lines.extend(format_uniform_blocks(inp, first, config.ctype_map))

    diagnostics: list[Diagnostic] = []
    for slang in slangs:
        backend = backends[slang.name]
        lines.extend(format_shader_payloads(inp, backend))
        diagnostics.extend(collect_unsupported_types(inp, backend))

    for program in inp.sorted_programs:
        lines.extend(format_shader_desc_proc(inp, program, backends, slangs))

    return AssembledModule(
        source="\n".join(lines) + "\n",
        diagnostics=tuple(diagnostics),
    )


# ===--- Writer ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing the generated module.

    Attributes:
        filename: Filename written, e.g. "triangle.odin".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class GenerateResult:
    file: FileWriteResult
    source: str
    diagnostics: tuple[Diagnostic, ...]


def _output_file_mode(output: Path) -> int:
    """Permission bits for output: kept from an existing file, else 0o666 minus umask."""
    try:
        return stat.S_IMODE(output.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_module(output: Path, content: str) -> FileWriteResult:
    """Write content to output, replacing any previous file atomically.

    The content goes to a temporary file next to output which then replaces
    output in one step, so a failed write never leaves a truncated file.

    Raises:
        GenerateError: DESTINATION_WRITE_FAILURE if the file cannot be
            written; output is left unmodified.
    """
    output = Path(output)
    data = content.encode("utf-8")
    tmp_name = ""
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=output.parent,
            prefix=f".{output.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_name = f.name
            f.write(data)
        os.chmod(tmp_name, _output_file_mode(output))
        os.replace(tmp_name, output)
    except OSError as err:
        if tmp_name:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
        raise GenerateError(
            Diagnostic(
                "DESTINATION_WRITE_FAILURE",
                f"failed to write output file '{output}': {err.strerror or err}",
                str(output),
            )
        ) from err

    resolved = output.resolve()
    return FileWriteResult(
        filename=output.name,
        path=resolved,
        line_count=content.count("\n"),
        byte_count=len(data),
    )


def generate(
    inp: ShaderInput,
    backends: Mapping[str, BackendOutput],
    config: EmitConfig,
    output: Path,
) -> GenerateResult:
    """Assemble the module and write it to output, all or nothing.

    Raises:
        GenerateError: On the first fatal condition. Nothing is written.
    """
    module = assemble_module_source(inp, backends, config)
    file_result = write_module(output, module.source)
    return GenerateResult(
        file=file_result, source=module.source, diagnostics=module.diagnostics
    )


# ===--- Reflection JSON loading ---=== #


@dataclass(frozen=True)
class ReflectionDump:
    """Contents of a JSON reflection dump produced by the shader front end."""

    shader_input: ShaderInput
    backends: dict[str, BackendOutput]
    headers: tuple[str, ...]
    ctypes: dict[str, str]


def _load_reflection(data: dict) -> StageReflection:
    return StageReflection(
        stage=data["stage"],
        entry_point=data.get("entry_point", "main"),
        inputs=tuple(
            Attr(
                slot=int(a["slot"]),
                name=a["name"],
                sem_name=a.get("sem_name", "TEXCOORD"),
                sem_index=int(a.get("sem_index", 0)),
            )
            for a in data.get("inputs", ())
        ),
        uniform_blocks=tuple(
            UniformBlock(
                slot=int(ub["slot"]),
                size=int(ub["size"]),
                struct_name=ub["struct_name"],
                inst_name=ub.get("inst_name", ""),
                flattened=bool(ub.get("flattened", False)),
                uniforms=tuple(
                    Uniform(
                        name=u["name"],
                        type=u["type"],
                        offset=int(u["offset"]),
                        array_count=int(u.get("array_count", 1)),
                    )
                    for u in ub.get("uniforms", ())
                ),
            )
            for ub in data.get("uniform_blocks", ())
        ),
        images=tuple(
            Image(
                slot=int(img["slot"]),
                name=img["name"],
                type=img.get("type", "2d"),
                sample_type=img.get("sample_type", "float"),
                multisampled=bool(img.get("multisampled", False)),
            )
            for img in data.get("images", ())
        ),
        samplers=tuple(
            Sampler(slot=int(smp["slot"]), name=smp["name"], type=smp.get("type", "sample"))
            for smp in data.get("samplers", ())
        ),
        image_samplers=tuple(
            ImageSampler(
                slot=int(pair["slot"]),
                name=pair["name"],
                image_name=pair["image_name"],
                sampler_name=pair["sampler_name"],
            )
            for pair in data.get("image_samplers", ())
        ),
    )


def _load_backend(slang: Slang, data: dict) -> BackendOutput:
    return BackendOutput(
        slang=slang,
        sources=tuple(
            StageSource(
                snippet_name=src["snippet"],
                source_code=src["source"],
                reflection=_load_reflection(src["reflection"]),
            )
            for src in data.get("sources", ())
        ),
        blobs=tuple(
            BytecodeBlob(snippet_name=name, data=bytes.fromhex(hex_data))
            for name, hex_data in data.get("bytecode", {}).items()
        ),
    )


def parse_reflection_dump(data: dict, base_path: str = "") -> ReflectionDump:
    """Build the reflection model from a decoded JSON reflection dump.

    Raises:
        KeyError, TypeError, ValueError, AttributeError: On malformed data.
    """
    inp = ShaderInput(
        base_path=data.get("base_path", base_path),
        module=data.get("module", ""),
        snippets=tuple(
            Snippet(name=s["name"], stage=s["stage"]) for s in data.get("snippets", ())
        ),
        programs=tuple(
            Program(
                name=p["name"],
                vs_name=p["vs"],
                fs_name=p["fs"],
                line=int(p.get("line", 0)),
            )
            for p in data.get("programs", ())
        ),
    )

    backends: dict[str, BackendOutput] = {}
    for name, backend_data in data.get("backends", {}).items():
        slang = SLANG_BY_NAME.get(name)
        if slang is None:
            raise ValueError(f"unknown shading language in dump: {name!r}")
        backends[name] = _load_backend(slang, backend_data)

    return ReflectionDump(
        shader_input=inp,
        backends=backends,
        headers=tuple(data.get("headers", ())),
        ctypes=dict(data.get("ctypes", {})),
    )


def load_reflection_json(path: Path) -> ReflectionDump:
    """Read and parse a JSON reflection dump.

    Raises:
        ConfigError: INVALID_INPUT when the file is not valid JSON or does
            not match the dump layout.
        OSError: If the file cannot be read.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        return parse_reflection_dump(json.loads(text), base_path=str(path))
    except (KeyError, TypeError, ValueError, AttributeError) as err:
        raise ConfigError(
            "INVALID_INPUT",
            f"Malformed reflection dump {path}: {err!r}",
            "Regenerate the dump with the shader front end.",
        ) from err


# ===--- Discovery ---=== #


def format_slangs_table() -> str:
    lines = ["Supported shading languages:", ""]
    lines.append(f"  {'Slang':<13}{'Family':<8}Backend")
    for slang in SLANGS:
        lines.append(f"  {slang.name:<13}{slang.family:<8}{slang.backend}")
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    if config.command == "list-slangs":
        print(format_slangs_table(), end="")
        return
    raise ValueError(f"Unknown discovery command: {config.command}")


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class BackendCount:
    """Embedded payload counts for one backend.

    Invariant: bytecode + source == number of embedded snippets.
    """

    slang: str
    backend: str
    bytecode: int
    source: int
    payload_bytes: int


@dataclass(frozen=True)
class GenerationSummary:
    module: str
    output: str
    programs: tuple[str, ...]
    uniform_blocks: int
    backends: tuple[BackendCount, ...]
    line_count: int
    warning_count: int


def build_backend_count(inp: ShaderInput, backend: BackendOutput) -> BackendCount:
    prefix = mod_prefix(inp)
    bytecode = 0
    source = 0
    payload_bytes = 0
    for snippet in inp.shader_snippets:
        payload = payload_for(prefix, snippet.name, backend)
        if payload.is_bytecode:
            bytecode += 1
        else:
            source += 1
        payload_bytes += len(payload.data)
    return BackendCount(
        slang=backend.slang.name,
        backend=backend.slang.backend,
        bytecode=bytecode,
        source=source,
        payload_bytes=payload_bytes,
    )


def build_generation_summary(
    inp: ShaderInput,
    backends: Mapping[str, BackendOutput],
    config: EmitConfig,
    result: GenerateResult,
) -> GenerationSummary:
    slangs = sort_slangs(config.slangs)
    first = backends[slangs[0].name]
    return GenerationSummary(
        module=inp.module,
        output=str(result.file.path),
        programs=tuple(prog.name for prog in inp.sorted_programs),
        uniform_blocks=len(unique_uniform_blocks(inp, first)),
        backends=tuple(build_backend_count(inp, backends[s.name]) for s in slangs),
        line_count=result.file.line_count,
        warning_count=len(result.diagnostics),
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary as a console report with one trailing newline."""
    if summary.module:
        heading = f"Shader module '{summary.module}' generated:"
    else:
        heading = "Shader module generated:"

    lines: list[str] = [heading, ""]
    lines.append(f"  Output:     {summary.output}")
    lines.append(f"  Programs:   {', '.join(summary.programs) or '-'}")
    lines.append(f"  Uniforms:   {summary.uniform_blocks} block structs")
    lines.append("")
    lines.append("  Backends:")
    for count in summary.backends:
        lines.append(
            f"    {count.slang:<13}{count.backend:<18}"
            f"{count.source} source, {count.bytecode} bytecode"
            f"{count.payload_bytes:>10,} bytes"
        )
    lines.append("")
    lines.append(
        f"  Total: {summary.line_count:,} lines, {summary.warning_count} warnings"
    )
    lines.append("")
    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Pipeline ---=== #


def build_emit_config(config: GenerateConfig, dump: ReflectionDump) -> EmitConfig:
    ctype_map = dict(dump.ctypes)
    ctype_map.update(dict(config.ctypes))
    return EmitConfig(
        slangs=config.slangs,
        ctype_map=ctype_map,
        headers=dump.headers,
        gen_version=config.gen_version,
        cmdline=config.cmdline,
    )


def run_generate(config: GenerateConfig) -> GenerateResult:
    """Execute load -> assemble -> write -> summary for a GenerateConfig.

    Raises:
        ConfigError: Malformed reflection dump.
        GenerateError: Inconsistent reflection or output write failure.
        OSError: Reflection dump not readable.
    """
    print(f"Loading: {config.input}")
    dump = load_reflection_json(config.input)
    inp = dump.shader_input
    if config.module is not None:
        inp = dataclasses.replace(inp, module=config.module)
    print(
        f"  Input: {len(inp.snippets)} snippets, {len(inp.programs)} programs, "
        f"{len(dump.backends)} backends"
    )

    emit_config = build_emit_config(config, dump)
    print(f"  Slangs: {', '.join(slang.name for slang in config.slangs)}")

    result = generate(inp, dump.backends, emit_config, config.output)
    for diagnostic in result.diagnostics:
        print(diagnostic.format(config.errfmt))
    print(
        f"  Written: {result.file.line_count} lines, {result.file.byte_count} bytes "
        f"to {result.file.path}"
    )

    summary = build_generation_summary(inp, dump.backends, emit_config, result)
    print_generation_summary(summary)
    return result


# ===--- Main generation ---=== #


def main(argv: list[str] | None = None):
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    if isinstance(config, DiscoveryConfig):
        run_discovery(config)
        return

    try:
        run_generate(config)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err
    except GenerateError as err:
        print(err.diagnostic.format(config.errfmt))
        raise SystemExit(1) from err
    except OSError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
