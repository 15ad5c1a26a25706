"""Example plugin adding cases to the global registry.

Enable with ``DECOMPTEST_PLUGINS=extra_cases`` (the module must be importable).
"""
from decomptest.core import Architecture, CfgShape, ExpectedFacts, FunctionRef, ObjectFormat, SampleRef, TestCase
from decomptest.registry import register_case


def register() -> None:
    register_case(
        TestCase(
            name="tail_call_arm64",
            architecture=Architecture.ARM64,
            object_format=ObjectFormat.ELF,
            sample=SampleRef(path="arm64/tail_call.elf"),
            expected=ExpectedFacts(
                functions=(FunctionRef(name="main"), FunctionRef(name="trampoline")),
                cfg={"trampoline": CfgShape(blocks=1, edges=0)},
                calling_conventions={"trampoline": "aapcs64"},
            ),
            tags=("plugin", "arm64"),
            description="Tail call recovered as a separate function.",
        )
    )
