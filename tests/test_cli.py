import json
from pathlib import Path

from click.testing import CliRunner

from decomptest.cli.main import cli


def _plan(tmp_path: Path, fake_decompiler, extra: str = "") -> Path:
    command = json.dumps(fake_decompiler)
    plan = tmp_path / "plan.yaml"
    plan.write_text(
        f"""
corpus: corpus
scratch: scratch
decompiler:
  command: {command}
  timeout: 30
cases:
  - name: simple_x86
    arch: x86
    sample: x86/simple.elf
    expected:
      functions: [main]
      calling_conventions: {{main: cdecl}}
    tags: [smoke]
  - name: simple_arm
    arch: arm
    sample: arm/simple.elf
    expected:
      functions: [main]
{extra}
""",
        encoding="utf-8",
    )
    return plan


def test_cli_help_short_flag() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["-h"])
    assert result.exit_code == 0
    assert "Usage:" in result.output
    assert "run" in result.output
    assert "architectures" in result.output


def test_cli_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == "decomptest 0.1.0"


def test_cli_architectures_lists_conventions() -> None:
    result = CliRunner().invoke(cli, ["architectures"])
    assert result.exit_code == 0
    assert "PowerPC" in result.output
    assert "aapcs64" in result.output
    assert "fastcall" in result.output


def test_cli_run_plan_with_missing_fixture(tmp_path, make_sample, fake_decompiler) -> None:
    make_sample("x86/simple.elf", {"artifacts": {"functions": ["main"], "calling_conventions": {"main": "cdecl"}}})
    plan = _plan(tmp_path, fake_decompiler)
    result = CliRunner().invoke(cli, ["run", "--plan", str(plan), "--no-color"])
    assert result.exit_code == 0, result.output
    assert "PASS  simple_x86@x86/elf" in result.output
    assert "SKIP  simple_arm@arm/elf" in result.output
    assert "Coverage gaps (1 skipped):" in result.output


def test_cli_run_exits_nonzero_on_failure(tmp_path, make_sample, fake_decompiler) -> None:
    make_sample("x86/simple.elf", {"artifacts": {"functions": ["start"]}})
    plan = _plan(tmp_path, fake_decompiler)
    result = CliRunner().invoke(cli, ["run", "--plan", str(plan), "--no-color", "--arch", "x86"])
    assert result.exit_code == 1
    assert "missing-function: main" in result.output
    assert "simple_arm" not in result.output


def test_cli_json_report(tmp_path, make_sample, fake_decompiler) -> None:
    make_sample("x86/simple.elf", {"mode": "crash"})
    report_path = tmp_path / "report.json"
    plan = _plan(tmp_path, fake_decompiler)
    result = CliRunner().invoke(
        cli,
        ["run", "--plan", str(plan), "--report", "json", "--report-path", str(report_path), "--keep-scratch", "never"],
    )
    assert result.exit_code == 1
    data = json.loads(report_path.read_text(encoding="utf-8"))
    statuses = {case["name"]: case["status"] for case in data["cases"]}
    assert statuses == {"simple_x86": "failed", "simple_arm": "skipped"}
    assert data["summary"]["by_architecture"]["ARM"]["skipped"] == 1
    crashed = next(case for case in data["cases"] if case["name"] == "simple_x86")
    assert "lifter: segmentation fault" in crashed["mismatches"][0]["detail"]
    assert not (tmp_path / "scratch" / "simple_x86").exists()


def test_cli_corpus_override_missing_aborts(tmp_path, fake_decompiler) -> None:
    plan = _plan(tmp_path, fake_decompiler)
    result = CliRunner().invoke(cli, ["run", "--plan", str(plan), "--corpus", str(tmp_path / "nowhere")])
    assert result.exit_code == 1
    assert "Fixture corpus not found" in result.output
    assert "PASS" not in result.output


def test_cli_list_and_filters(tmp_path, fake_decompiler) -> None:
    plan = _plan(tmp_path, fake_decompiler)
    runner = CliRunner()
    listed = runner.invoke(cli, ["list", "--plan", str(plan)])
    assert listed.exit_code == 0
    assert "simple_x86@x86/elf  sample=x86/simple.elf  expected=facts" in listed.output
    filtered = runner.invoke(cli, ["run", "--plan", str(plan), "--list", "--tags", "smoke"])
    assert filtered.exit_code == 0
    assert filtered.output.strip() == "simple_x86@x86/elf"
    empty = runner.invoke(cli, ["run", "--plan", str(plan), "--cases", "nothing*"])
    assert empty.exit_code == 1
    assert "No cases matched" in empty.output


def test_cli_reports_plan_errors(tmp_path) -> None:
    plan = tmp_path / "plan.yaml"
    plan.write_text("cases: []\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["run", "--plan", str(plan)])
    assert result.exit_code == 1
    assert "schema validation failed" in result.output
