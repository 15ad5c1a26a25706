"""Core dataclasses shared across decomptest subsystems."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class Architecture(str, enum.Enum):
    """Target instruction set of a test case."""

    X86 = "x86"
    X86_64 = "x86_64"
    ARM = "arm"
    ARM64 = "arm64"
    MIPS = "mips"
    POWERPC = "powerpc"

    @classmethod
    def parse(cls, value: Union[str, "Architecture"]) -> "Architecture":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        try:
            return cls(_ARCH_ALIASES.get(key, key))
        except ValueError as exc:
            supported = ", ".join(item.value for item in cls)
            raise ValueError(f"Unknown architecture '{value}' (supported: {supported})") from exc

    @property
    def info(self) -> "ArchitectureInfo":
        return ARCHITECTURES[self]


class ObjectFormat(str, enum.Enum):
    """Binary container format of a sample."""

    ELF = "elf"
    PE = "pe"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Union[str, "ObjectFormat"]) -> "ObjectFormat":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        try:
            return cls(_FORMAT_ALIASES.get(key, key))
        except ValueError as exc:
            supported = ", ".join(item.value for item in cls)
            raise ValueError(f"Unknown object format '{value}' (supported: {supported})") from exc


_ARCH_ALIASES = {
    "i386": "x86",
    "i686": "x86",
    "ia32": "x86",
    "x86_64": "x86_64",
    "x64": "x86_64",
    "amd64": "x86_64",
    "arm32": "arm",
    "armv7": "arm",
    "aarch64": "arm64",
    "armv8": "arm64",
    "mips32": "mips",
    "ppc": "powerpc",
    "ppc32": "powerpc",
}

_FORMAT_ALIASES = {
    "coff": "pe",
    "exe": "pe",
    "dll": "pe",
    "so": "elf",
}


@dataclass(frozen=True)
class ArchitectureInfo:
    """Static metadata for one architecture."""

    label: str
    calling_conventions: Tuple[str, ...]
    convention_aliases: Mapping[str, str] = field(default_factory=dict)
    default_timeout: float = 60.0

    def normalize_convention(self, name: str) -> str:
        key = " ".join(str(name).strip().lower().replace("_", " ").replace("-", " ").split())
        key = key.replace(" ", "_")
        return self.convention_aliases.get(key, key)

    def accepts_convention(self, name: str) -> bool:
        return self.normalize_convention(name) in self.calling_conventions


ARCHITECTURES: Mapping[Architecture, ArchitectureInfo] = {
    Architecture.X86: ArchitectureInfo(
        label="x86",
        calling_conventions=("cdecl", "stdcall", "fastcall"),
        convention_aliases={"winapi": "stdcall", "msfastcall": "fastcall"},
        default_timeout=60.0,
    ),
    Architecture.X86_64: ArchitectureInfo(
        label="x86-64",
        calling_conventions=("sysv", "microsoft"),
        convention_aliases={
            "system_v": "sysv",
            "system_v_amd64": "sysv",
            "sysv_amd64": "sysv",
            "sysv64": "sysv",
            "microsoft_x64": "microsoft",
            "ms": "microsoft",
            "ms_x64": "microsoft",
            "win64": "microsoft",
        },
        default_timeout=90.0,
    ),
    Architecture.ARM: ArchitectureInfo(
        label="ARM",
        calling_conventions=("aapcs",),
        convention_aliases={"arm_aapcs": "aapcs", "aapcs32": "aapcs"},
        default_timeout=90.0,
    ),
    Architecture.ARM64: ArchitectureInfo(
        label="ARM64",
        calling_conventions=("aapcs64",),
        convention_aliases={"aarch64_aapcs": "aapcs64", "arm64_aapcs": "aapcs64"},
        default_timeout=90.0,
    ),
    Architecture.MIPS: ArchitectureInfo(
        label="MIPS",
        calling_conventions=("o32", "n64"),
        convention_aliases={"mips_o32": "o32", "mips_n64": "n64"},
        default_timeout=120.0,
    ),
    Architecture.POWERPC: ArchitectureInfo(
        label="PowerPC",
        calling_conventions=("sysv", "eabi"),
        convention_aliases={"system_v": "sysv", "ppc_sysv": "sysv", "ppc_eabi": "eabi"},
        default_timeout=120.0,
    ),
}


Address = int


def parse_address(value: Any) -> Address:
    """Parse an address given as int or hex/decimal string."""

    if isinstance(value, bool):
        raise ValueError(f"Invalid address {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if not text:
        raise ValueError("Address cannot be empty")
    return int(text, 16) if text.startswith("0x") else int(text, 10)


@dataclass(frozen=True)
class FunctionRef:
    """Expected function identified by name, address, or both."""

    name: Optional[str] = None
    address: Optional[Address] = None

    def label(self) -> str:
        if self.name and self.address is not None:
            return f"{self.name}@{self.address:#x}"
        if self.name:
            return self.name
        return f"{self.address:#x}" if self.address is not None else "?"

    @classmethod
    def from_raw(cls, raw: Any) -> "FunctionRef":
        if isinstance(raw, str):
            return cls(name=raw)
        if isinstance(raw, int) and not isinstance(raw, bool):
            return cls(address=raw)
        if isinstance(raw, Mapping):
            name = raw.get("name")
            address = raw.get("address")
            if name is None and address is None:
                raise ValueError("function entries need 'name' or 'address'")
            return cls(
                name=str(name) if name is not None else None,
                address=parse_address(address) if address is not None else None,
            )
        raise ValueError(f"Unsupported function entry {raw!r}")


@dataclass(frozen=True)
class CfgShape:
    """Expected structural shape of one function's control-flow graph."""

    blocks: Optional[int] = None
    edges: Optional[int] = None
    all_reachable: Optional[bool] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CfgShape":
        blocks = data.get("blocks")
        edges = data.get("edges")
        reachable = data.get("all_reachable", data.get("reachable"))
        return cls(
            blocks=int(blocks) if blocks is not None else None,
            edges=int(edges) if edges is not None else None,
            all_reachable=bool(reachable) if reachable is not None else None,
        )


@dataclass(frozen=True)
class ExpectedFacts:
    """Partial set of facts a decompilation must exhibit."""

    functions: Tuple[FunctionRef, ...] = tuple()
    cfg: Mapping[str, CfgShape] = field(default_factory=dict)
    calling_conventions: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> Optional["ExpectedFacts"]:
        if data is None:
            return None
        if not isinstance(data, Mapping):
            raise ValueError("expected facts must be a mapping")
        functions = tuple(FunctionRef.from_raw(item) for item in data.get("functions", []) or [])
        cfg_raw = data.get("cfg") or {}
        if not isinstance(cfg_raw, Mapping):
            raise ValueError("expected.cfg must map function names to shapes")
        cfg: Dict[str, CfgShape] = {}
        for name, shape in cfg_raw.items():
            if not isinstance(shape, Mapping):
                raise ValueError(f"expected.cfg.{name} must be a mapping")
            cfg[str(name)] = CfgShape.from_mapping(shape)
        conventions_raw = data.get("calling_conventions", data.get("callingConventions")) or {}
        if not isinstance(conventions_raw, Mapping):
            raise ValueError("expected.calling_conventions must be a mapping")
        conventions = {str(k): str(v) for k, v in conventions_raw.items()}
        return cls(functions=functions, cfg=cfg, calling_conventions=conventions)


@dataclass(frozen=True)
class SampleRef:
    """Reference to a fixture inside the corpus."""

    path: str
    sha256: Optional[str] = None


@dataclass(frozen=True)
class TestCase:
    """Declarative description of one decompilation check."""

    __test__ = False  # keep pytest from collecting this class

    name: str
    architecture: Architecture
    object_format: ObjectFormat
    sample: SampleRef
    expected: Optional[ExpectedFacts] = None
    timeout: Optional[float] = None
    tags: Tuple[str, ...] = tuple()
    nondeterministic: Tuple[str, ...] = tuple()
    description: str = ""

    def identifier(self) -> str:
        return f"{self.name}@{self.architecture.value}/{self.object_format.value}"

    def effective_timeout(self, override: Optional[float] = None) -> float:
        if self.timeout is not None:
            return self.timeout
        if override is not None:
            return override
        return self.architecture.info.default_timeout
