"""Built-in test cases shipped with decomptest.

Samples are addressed relative to the corpus root as ``<arch>/<file>``.
"""
from __future__ import annotations

from decomptest.core import (
    Architecture,
    CfgShape,
    ExpectedFacts,
    FunctionRef,
    ObjectFormat,
    SampleRef,
    TestCase,
)

MAIN_ONLY = ExpectedFacts(functions=(FunctionRef(name="main"),))

# Single-function sample whose main has one if/else diamond.
DIAMOND_MAIN = ExpectedFacts(
    functions=(FunctionRef(name="main"),),
    cfg={"main": CfgShape(blocks=4, edges=4, all_reachable=True)},
)


def _simple(name: str, arch: Architecture, fmt: ObjectFormat, path: str, description: str) -> TestCase:
    return TestCase(
        name=name,
        architecture=arch,
        object_format=fmt,
        sample=SampleRef(path=path),
        expected=MAIN_ONLY,
        tags=("smoke", arch.value, fmt.value),
        description=description,
    )


def _conventions(arch: Architecture, path: str, conventions: dict) -> TestCase:
    return TestCase(
        name=f"calling_conventions_{arch.value}",
        architecture=arch,
        object_format=ObjectFormat.ELF if "elf" in path else ObjectFormat.PE,
        sample=SampleRef(path=path),
        expected=ExpectedFacts(
            functions=tuple(FunctionRef(name=name) for name in conventions),
            calling_conventions=conventions,
        ),
        tags=("calling-convention", arch.value),
        description=f"Calling convention detection on {arch.info.label}.",
    )


BUILTIN_CASES = (
    _simple("simple_x86_elf", Architecture.X86, ObjectFormat.ELF, "x86/simple.elf",
            "Simple x86 ELF binary with a main function."),
    _simple("simple_x86_pe", Architecture.X86, ObjectFormat.PE, "x86/simple.exe",
            "Simple x86 PE executable with a main function."),
    _simple("simple_x86_64_elf", Architecture.X86_64, ObjectFormat.ELF, "x86_64/simple.elf",
            "Simple x86-64 ELF binary with a main function."),
    _simple("simple_x86_64_pe", Architecture.X86_64, ObjectFormat.PE, "x86_64/simple.exe",
            "Simple x86-64 PE executable with a main function."),
    _simple("simple_arm_elf", Architecture.ARM, ObjectFormat.ELF, "arm/simple.elf",
            "Simple 32-bit ARM ELF binary."),
    _simple("simple_arm64_elf", Architecture.ARM64, ObjectFormat.ELF, "arm64/simple.elf",
            "Simple AArch64 ELF binary."),
    _simple("simple_mips_elf", Architecture.MIPS, ObjectFormat.ELF, "mips/simple.elf",
            "Simple MIPS ELF binary."),
    _simple("simple_powerpc_elf", Architecture.POWERPC, ObjectFormat.ELF, "powerpc/simple.elf",
            "Simple PowerPC ELF binary."),
    TestCase(
        name="control_flow_x86_elf",
        architecture=Architecture.X86,
        object_format=ObjectFormat.ELF,
        sample=SampleRef(path="x86/diamond.elf"),
        expected=DIAMOND_MAIN,
        tags=("cfg", "x86", "elf"),
        description="Control-flow recovery of an if/else diamond.",
    ),
    _conventions(
        Architecture.X86,
        "x86/conventions.exe",
        {"use_cdecl": "cdecl", "use_stdcall": "stdcall", "use_fastcall": "fastcall"},
    ),
    _conventions(
        Architecture.X86_64,
        "x86_64/conventions.elf",
        {"main": "sysv"},
    ),
    _conventions(
        Architecture.ARM,
        "arm/conventions.elf",
        {"main": "aapcs"},
    ),
    _conventions(
        Architecture.ARM64,
        "arm64/conventions.elf",
        {"main": "aapcs64"},
    ),
    _conventions(
        Architecture.MIPS,
        "mips/conventions.elf",
        {"main": "o32"},
    ),
    _conventions(
        Architecture.POWERPC,
        "powerpc/conventions.elf",
        {"main": "sysv"},
    ),
)
