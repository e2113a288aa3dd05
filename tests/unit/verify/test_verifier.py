"""Unit tests for snippet verification."""

import random
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from snipbundle.progress import SnippetStatus
from snipbundle.report import ProblemKind, Severity
from snipbundle.snippets import LinkedSnippet, SnippetMap
from snipbundle.verify import CompileResult, Diagnostic, Verifier, VerifyOptions, compile_snippet, rustc_command


class FakeCompiler:
    """Compiles snippets whose bundle does not contain `BROKEN`."""

    def __init__(self):
        self.seen = {}

    def __call__(self, name, contents, options):
        self.seen[name] = contents
        if "BROKEN" in contents:
            return CompileResult(False, [Diagnostic(message=f"bad {name}", level="error")])
        return CompileResult(True, [])


class RecordingCallback:
    def __init__(self):
        self.events = []
        self.lines = []

    def on_start(self, task, total):
        pass

    def on_progress(self, name, status, detail):
        self.events.append((name, status))

    def println(self, message):
        self.lines.append(message if isinstance(message, str) else message.plain)


@pytest.fixture
def snippets() -> SnippetMap:
    return SnippetMap(
        {
            "gcd": LinkedSnippet("fn gcd() {}\n", set()),
            "lcm": LinkedSnippet("fn lcm() {}\n", {"gcd"}),
            "broken": LinkedSnippet("fn broken() { BROKEN }\n", set()),
            "orphan": LinkedSnippet("fn orphan() {}\n", {"ghost"}),
        }
    )


class TestVerifier:
    def test_compiles_bundles(self, snippets):
        compiler = FakeCompiler()
        Verifier(VerifyOptions(jobs=2), compile_fn=compiler).verify(snippets)
        assert compiler.seen["lcm"] == "fn lcm() {}\nfn gcd() {}\n"
        assert set(compiler.seen) == {"gcd", "lcm", "broken", "orphan"}

    def test_report(self, snippets):
        report = Verifier(compile_fn=FakeCompiler()).verify(snippets)
        assert not report.ok
        assert report.failed == ["broken", "orphan"]
        assert report.results["lcm"].ok
        assert report.results["lcm"].size == len("fn lcm() {}\nfn gcd() {}\n")

    def test_missing_include_fails_but_compiles(self, snippets):
        report = Verifier(compile_fn=FakeCompiler()).verify(snippets)
        orphan = report.results["orphan"]
        assert orphan.compiled
        assert orphan.missing_includes == ["ghost"]
        warnings = report.problems.get_problems_by_kind(ProblemKind.MISSING_DEPENDENCY)
        assert [(p.snippet, p.severity) for p in warnings] == [("orphan", Severity.WARNING)]

    def test_compile_failure_problem(self, snippets):
        report = Verifier(compile_fn=FakeCompiler()).verify(snippets)
        failures = report.problems.get_problems_by_kind(ProblemKind.COMPILE_FAILURE)
        assert [(p.snippet, p.detail) for p in failures] == [("broken", "bad broken")]
        assert report.problems.get_problems(Severity.ERROR)

    def test_all_ok(self):
        snippets = SnippetMap({"a": LinkedSnippet("fn a() {}\n", set())})
        report = Verifier(compile_fn=FakeCompiler()).verify(snippets)
        assert report.ok
        assert len(report.problems) == 0

    def test_empty_map(self):
        report = Verifier(compile_fn=FakeCompiler()).verify(SnippetMap())
        assert report.ok
        assert report.results == {}

    def test_result_independent_of_order(self, snippets):
        names = list(snippets)
        reference = Verifier(compile_fn=FakeCompiler()).verify(snippets)
        for seed in range(3):
            random.Random(seed).shuffle(names)
            shuffled = SnippetMap({name: snippets[name] for name in names})
            report = Verifier(VerifyOptions(jobs=4), compile_fn=FakeCompiler()).verify(shuffled)
            assert report.failed == reference.failed
            assert report.problems.format_summary() == reference.problems.format_summary()

    def test_compiler_that_cannot_start(self, snippets):
        def missing_rustc(name, contents, options):
            raise FileNotFoundError("rustc")

        report = Verifier(compile_fn=missing_rustc).verify(snippets)
        assert not report.ok
        errors = report.problems.get_problems_by_kind(ProblemKind.COMPILER_ERROR)
        assert len(errors) == len(snippets)
        assert "FileNotFoundError" in report.results["gcd"].error

    def test_timeout_is_compiler_error(self):
        def slow(name, contents, options):
            raise subprocess.TimeoutExpired(cmd="rustc", timeout=1)

        snippets = SnippetMap({"a": LinkedSnippet("", set())})
        report = Verifier(compile_fn=slow).verify(snippets)
        assert report.failed == ["a"]
        assert report.problems.get_problems_by_kind(ProblemKind.COMPILER_ERROR)

    def test_callback_events(self, snippets):
        callback = RecordingCallback()
        Verifier(VerifyOptions(verbose=True), compile_fn=FakeCompiler()).verify(snippets, callback)
        assert ("broken", SnippetStatus.FAILED) in callback.events
        assert ("gcd", SnippetStatus.DONE) in callback.events
        assert "warning: Invalid include `ghost` in orphan." in callback.lines
        assert any(line.startswith("Verified gcd") for line in callback.lines)
        assert any(line.startswith("error: bad broken") for line in callback.lines)


class TestRustcCommand:
    def test_default(self):
        cmd = rustc_command(Path("/t/snippet.rs"), Path("/t"), VerifyOptions())
        assert cmd == [
            "rustc",
            str(Path("/t/snippet.rs")),
            "--edition=2021",
            "--crate-type=lib",
            "--error-format=json",
            f"--out-dir={Path('/t')}",
        ]

    def test_toolchain_and_edition(self):
        cmd = rustc_command(Path("s.rs"), Path("."), VerifyOptions(toolchain="nightly", edition="2018"))
        assert cmd[:2] == ["rustc", "+nightly"]
        assert "--edition=2018" in cmd


class TestCompileSnippet:
    @patch("snipbundle.verify.verifier.safe_run")
    def test_writes_source_and_parses_stderr(self, mock_run):
        written = {}

        def fake_run(cmd, **kwargs):
            source = Path(cmd[1])
            written["text"] = source.read_text(encoding="utf-8")
            written["name"] = source.name
            stderr = '{"message": "unused", "level": "warning", "spans": []}\n'
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr=stderr)

        mock_run.side_effect = fake_run
        result = compile_snippet("a", "fn a() {}\n", VerifyOptions(timeout=5))

        assert result.success
        assert [d.level for d in result.diagnostics] == ["warning"]
        assert written == {"text": "fn a() {}\n", "name": "snippet.rs"}
        assert mock_run.call_args.kwargs["timeout"] == 5

    @patch("snipbundle.verify.verifier.safe_run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess([], 1, stdout="", stderr="")
        assert not compile_snippet("a", "fn (", VerifyOptions()).success

    @pytest.mark.requires_rustc
    def test_real_rustc(self):
        assert compile_snippet("ok", "pub fn f() -> u8 { 1 }\n", VerifyOptions()).success
        failed = compile_snippet("bad", "pub fn f() -> u8 { x }\n", VerifyOptions())
        assert not failed.success
        assert any(d.code == "E0425" for d in failed.diagnostics)
