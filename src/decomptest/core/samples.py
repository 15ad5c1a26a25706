"""Locate and validate binary fixtures inside the corpus."""
from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from decomptest.errors import CorpusError, FixtureError

from .models import ObjectFormat, TestCase

logger = logging.getLogger(__name__)

PRESENT = "present"
ABSENT = "absent"


@dataclass(frozen=True)
class ResolvedSample:
    """Availability of a case's fixture for this run."""

    status: str
    path: Path
    object_format: ObjectFormat
    size: int = 0
    reason: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.status == PRESENT


class SampleResolver:
    """Resolves sample references against a corpus root.

    Absence is a normal state (partial checkouts, CI shards without every
    architecture) and is returned, not raised.
    """

    def __init__(self, corpus_root: Path) -> None:
        self.corpus_root = Path(corpus_root).expanduser()

    def check_corpus(self) -> None:
        if not self.corpus_root.exists():
            raise CorpusError(f"Fixture corpus not found: {self.corpus_root}")
        if not self.corpus_root.is_dir():
            raise CorpusError(f"Fixture corpus is not a directory: {self.corpus_root}")
        if not os.access(self.corpus_root, os.R_OK | os.X_OK):
            raise CorpusError(f"Fixture corpus is not readable: {self.corpus_root}")

    def resolve(self, case: TestCase) -> ResolvedSample:
        path = Path(case.sample.path)
        if not path.is_absolute():
            path = self.corpus_root / path
        if not path.exists():
            return self._absent(case, path, "sample not found")
        if not path.is_file():
            return self._absent(case, path, "sample is not a regular file")
        size = path.stat().st_size
        if size == 0:
            return self._absent(case, path, "sample is empty")
        if not os.access(path, os.R_OK):
            raise FixtureError(f"Sample exists but is not readable: {path}")
        if case.sample.sha256:
            digest = _sha256(path)
            if digest != case.sample.sha256.lower():
                raise FixtureError(
                    f"Sample digest mismatch for {path}: expected {case.sample.sha256}, got {digest}"
                )
        return ResolvedSample(status=PRESENT, path=path, object_format=case.object_format, size=size)

    def _absent(self, case: TestCase, path: Path, reason: str) -> ResolvedSample:
        logger.debug("case %s: %s (%s)", case.name, reason, path)
        return ResolvedSample(
            status=ABSENT,
            path=path,
            object_format=case.object_format,
            reason=f"{reason}: {path}",
        )


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()
