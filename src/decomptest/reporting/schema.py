"""JSON schema definition for reporter output."""
from __future__ import annotations

SCHEMA_VERSION = "1.0.0"

_COUNTS = {
    "type": "object",
    "required": ["passed", "failed", "skipped", "errored"],
    "properties": {
        "passed": {"type": "integer"},
        "failed": {"type": "integer"},
        "skipped": {"type": "integer"},
        "errored": {"type": "integer"},
    },
}

JSON_SCHEMA_V1 = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "decomptest run report",
    "type": "object",
    "required": ["schema_version", "generated_at", "summary", "cases"],
    "properties": {
        "schema_version": {"type": "string"},
        "generated_at": {"type": "string", "format": "date-time"},
        "summary": {
            "type": "object",
            "required": ["total", "totals", "by_architecture", "by_format", "exit_code", "duration_s"],
            "properties": {
                "total": {"type": "integer"},
                "totals": _COUNTS,
                "by_architecture": {"type": "object", "additionalProperties": _COUNTS},
                "by_format": {"type": "object", "additionalProperties": _COUNTS},
                "exit_code": {"type": "integer", "enum": [0, 1]},
                "duration_s": {"type": "number"},
            },
        },
        "cases": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "architecture", "format", "status", "duration_ms", "mismatches"],
                "properties": {
                    "name": {"type": "string"},
                    "architecture": {"type": "string"},
                    "format": {"type": "string"},
                    "status": {"enum": ["passed", "failed", "skipped", "errored"]},
                    "duration_ms": {"type": "number"},
                    "sample": {"type": ["string", "null"]},
                    "reason": {"type": "string"},
                    "error": {"type": "string"},
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "mismatches": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["kind", "subject"],
                            "properties": {
                                "kind": {"type": "string"},
                                "subject": {"type": "string"},
                                "expected": {},
                                "observed": {},
                                "tags": {"type": "array", "items": {"type": "string"}},
                                "detail": {"type": "string"},
                            },
                        },
                    },
                },
            },
        },
    },
}
