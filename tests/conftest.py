from __future__ import annotations

import json
import sys
import textwrap
from pathlib import Path
from typing import Any, Mapping

import pytest

from decomptest import bootstrap

FAKE_DECOMPILER = textwrap.dedent(
    """
    import json
    import sys
    import time

    binary, arch, fmt, output = sys.argv[1:5]
    with open(binary, encoding="utf-8") as handle:
        spec = json.load(handle)
    mode = spec.get("mode", "ok")
    if mode == "crash":
        sys.stderr.write("lifter: segmentation fault\\n")
        sys.exit(139)
    if mode == "hang":
        time.sleep(60)
    if mode == "garbage":
        print("this is not json")
        sys.exit(0)
    if mode == "refuse":
        payload = {"success": False, "diagnostics": "unsupported instruction"}
    else:
        payload = {
            "success": True,
            "artifacts": spec.get("artifacts", {}),
            "diagnostics": arch + "/" + fmt,
            "decompiler_version": "9.9",
        }
    if spec.get("stdout"):
        print(json.dumps(payload))
    else:
        with open(output, "w", encoding="utf-8") as handle:
            json.dump(payload, handle)
    """
)


@pytest.fixture(scope="session", autouse=True)
def setup_decomptest_registry() -> None:
    """Bootstrap built-in cases once for the entire test session."""

    bootstrap()


@pytest.fixture
def fake_decompiler(tmp_path: Path) -> list[str]:
    script = tmp_path / "fake_decompiler.py"
    script.write_text(FAKE_DECOMPILER, encoding="utf-8")
    return [sys.executable, str(script), "{binary}", "{arch}", "{format}", "{output}"]


@pytest.fixture
def corpus(tmp_path: Path) -> Path:
    root = tmp_path / "corpus"
    root.mkdir()
    return root


def write_sample(corpus: Path, relpath: str, spec: Mapping[str, Any]) -> Path:
    """Write a fixture whose content tells the fake decompiler what to report."""

    path = corpus / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(spec), encoding="utf-8")
    return path


@pytest.fixture
def make_sample(corpus: Path):
    def _make(relpath: str, spec: Mapping[str, Any]) -> Path:
        return write_sample(corpus, relpath, spec)

    return _make
