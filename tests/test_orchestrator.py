"""Tests for presubmit.orchestrator."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from presubmit.config import PresubmitConfig
from presubmit.orchestrator import (
    DIFF_FOUND_MESSAGE,
    Orchestrator,
    UnsupportedStepError,
    VerificationFailure,
)
from presubmit.tools.runner import ToolInvocationError
from presubmit.tools.toolchain import MissingToolError, Toolchain

from tests._fixtures.repo_builder import BOILERPLATE, RepoBuilder

MODULE = "github.com/GoogleCloudPlatform/prometheus-engine"

Handler = Callable[[List[str], Path], Optional[str]]


class RecordingRunner:
    """Records commands and dispatches them to per-command handlers."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.handlers: Dict[tuple[str, ...], Handler] = {}

    def on(self, prefix: tuple[str, ...], handler: Handler) -> None:
        self.handlers[prefix] = handler

    def __call__(self, args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        args = list(args)
        self.calls.append(args)
        for prefix, handler in self.handlers.items():
            if tuple(args[: len(prefix)]) == prefix:
                return handler(args, Path(cwd)) or ""
        return ""

    def commands(self) -> List[str]:
        return [" ".join(call) for call in self.calls]


class StubGate:
    def __init__(self, skip: bool) -> None:
        self.skip = skip
        self.calls: List[tuple[Path, str, str]] = []

    def should_skip(self, local_subtree: Path, upstream_url: str, subtree: str) -> bool:
        self.calls.append((local_subtree, upstream_url, subtree))
        return self.skip


def _toolchain(**overrides: Optional[str]) -> Toolchain:
    paths: Dict[str, Optional[str]] = {
        "go": "go",
        "git": "git",
        "bash": "bash",
        "controller-gen": "controller-gen",
        "po-docgen": "po-docgen",
    }
    paths.update(overrides)
    return Toolchain(paths=paths, requested={name: name for name in paths})


def _orchestrator(root: Path, runner: RecordingRunner, **kwargs) -> Orchestrator:  # type: ignore[no-untyped-def]
    kwargs.setdefault("toolchain", _toolchain())
    return Orchestrator(root, PresubmitConfig(root=root), runner=runner, **kwargs)


def test_run_manifests_writes_three_combined_files(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    orchestrator = _orchestrator(root, RecordingRunner())

    written = orchestrator.run_manifests()

    assert [path.relative_to(root).as_posix() for path in written] == [
        "manifests/setup.yaml",
        "manifests/operator.yaml",
        "manifests/rule-evaluator.yaml",
    ]
    operator = operator_repo.read("manifests/operator.yaml")
    assert operator.startswith(BOILERPLATE.rstrip("\n") + "\n\n# NOTE: This file is autogenerated.\n")
    assert operator.endswith("kind: Namespace\n---\nkind: Deployment\n")
    assert "resources: []" not in operator
    assert operator_repo.read("manifests/rule-evaluator.yaml").endswith("kind: ConfigMap\n")


def test_run_crdgen_cleans_generated_crds_and_combines(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()

    def controller_gen(args: List[str], cwd: Path) -> None:
        crd_dir = cwd / args[-1].split("=", 1)[1]
        (crd_dir / "monitoring.googleapis.com_rules.yaml").write_text(
            "\n---\napiVersion: apiextensions.k8s.io/v1\nkind: CustomResourceDefinition\n"
            "status:\n  acceptedNames:\n    kind: \"\"\n",
            encoding="utf-8",
        )

    runner.on(("controller-gen",), controller_gen)
    orchestrator = _orchestrator(root, runner)

    setup = orchestrator.run_crdgen()

    assert runner.calls == [
        [
            "controller-gen",
            "crd",
            "paths=./pkg/operator/apis/...",
            "output:crd:dir=cmd/operator/deploy/crds",
        ]
    ]
    crd = operator_repo.read("cmd/operator/deploy/crds/monitoring.googleapis.com_rules.yaml")
    assert crd.startswith(BOILERPLATE)
    assert "status:" not in crd
    assert setup == root / "manifests" / "setup.yaml"
    combined = setup.read_text(encoding="utf-8")
    assert combined.endswith(
        "# NOTE: This file is autogenerated.\n"
        "apiVersion: apiextensions.k8s.io/v1\nkind: CustomResourceDefinition\n"
    )


def test_run_docgen_applies_branding(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()
    runner.on(("po-docgen",), lambda args, cwd: "# API Docs\n\nThis Prometheus Operator API...\n")
    orchestrator = _orchestrator(root, runner)

    output = orchestrator.run_docgen()

    assert runner.calls == [["po-docgen", "api", "pkg/operator/apis/monitoring/v1/types.go"]]
    assert output == root / "doc" / "api.md"
    assert output.read_text(encoding="utf-8") == "# API Docs\n\nThis GMP CRDs API...\n"


def test_run_format_tidies_vendors_and_formats(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()

    _orchestrator(root, runner).run_format()

    assert runner.commands() == ["go mod tidy", "go mod vendor", "go fmt ./..."]


def test_run_test_excludes_e2e_and_bench_packages(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()
    runner.on(
        ("go", "list"),
        lambda args, cwd: "\n".join(
            [
                f"{MODULE}/pkg/operator",
                f"{MODULE}/pkg/operator/e2e",
                f"{MODULE}/pkg/export",
                f"{MODULE}/pkg/export/bench",
            ]
        ),
    )

    packages = _orchestrator(root, runner).run_test()

    assert packages == [f"{MODULE}/pkg/operator", f"{MODULE}/pkg/export"]
    assert runner.calls[-1] == ["go", "test", *packages]


def test_run_diff_passes_when_clean(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()

    _orchestrator(root, runner).run_diff()

    assert runner.calls == [
        ["git", "diff", "-s", "--exit-code", "--", "doc", "go.mod", "go.sum", "*.go", "*.yaml"]
    ]


def test_run_diff_reports_verification_failure(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()

    def dirty(args: List[str], cwd: Path) -> None:
        raise ToolInvocationError(args, 1)

    runner.on(("git", "diff"), dirty)

    with pytest.raises(VerificationFailure, match="diff found"):
        _orchestrator(root, runner).run_diff()
    assert DIFF_FOUND_MESSAGE.startswith("diff found")


def test_run_diff_propagates_git_errors(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()

    def broken(args: List[str], cwd: Path) -> None:
        raise ToolInvocationError(args, 128, stderr="fatal: not a git repository")

    runner.on(("git", "diff"), broken)

    with pytest.raises(ToolInvocationError) as excinfo:
        _orchestrator(root, runner).run_diff()
    assert not isinstance(excinfo.value, VerificationFailure)
    assert excinfo.value.returncode == 128


def _install_codegen_script(root: Path) -> Path:
    script = root / "vendor" / "k8s.io" / "code-generator" / "generate-groups.sh"
    script.parent.mkdir(parents=True)
    script.write_text("#!/usr/bin/env bash\n", encoding="utf-8")
    return script


def _fake_generators(args: List[str], cwd: Path) -> None:
    output_base = Path(args[args.index("--output-base") + 1])
    module_root = output_base / MODULE
    if args[2] == "deepcopy":
        target = module_root / "pkg/operator/apis/monitoring/v1/zz_generated.deepcopy.go"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("// deepcopy\n", encoding="utf-8")
    else:
        client = module_root / "pkg/operator/generated/clientset/versioned/clientset.go"
        client.parent.mkdir(parents=True, exist_ok=True)
        client.write_text("// clientset\n", encoding="utf-8")


def test_run_codegen_replaces_generated_tree(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    script = _install_codegen_script(root)
    operator_repo.write({"pkg/operator/generated/listers/stale.go": "// removed upstream\n"})
    runner = RecordingRunner()
    runner.on(("bash",), _fake_generators)

    _orchestrator(root, runner).run_codegen()

    assert runner.calls[0] == ["go", "mod", "vendor"]
    deepcopy_call, client_call = runner.calls[1], runner.calls[2]
    assert deepcopy_call[:3] == ["bash", str(script), "deepcopy"]
    assert "--plural-exceptions" not in deepcopy_call
    assert client_call[:3] == ["bash", str(script), "client,informer,lister"]
    assert client_call[-2:] == [
        "--plural-exceptions",
        "Rules:Rules,ClusterRules:ClusterRules,GlobalRules:GlobalRules",
    ]
    assert client_call[3:6] == [
        f"{MODULE}/pkg/operator/generated",
        f"{MODULE}/pkg/operator/apis",
        "monitoring:v1",
    ]

    generated = root / "pkg" / "operator" / "generated"
    assert (generated / "clientset" / "versioned" / "clientset.go").exists()
    assert not (generated / "listers" / "stale.go").exists()
    assert (root / "pkg/operator/apis/monitoring/v1/zz_generated.deepcopy.go").exists()
    assert not list(root.glob(".codegen-*"))
    assert not list((root / "pkg" / "operator").glob(".generated-old-*"))


def test_run_codegen_cleans_up_after_generator_failure(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    _install_codegen_script(root)
    operator_repo.write({"pkg/operator/generated/listers/kept.go": "// previous\n"})
    runner = RecordingRunner()

    def failing(args: List[str], cwd: Path) -> None:
        raise ToolInvocationError(args, 2)

    runner.on(("bash",), failing)

    with pytest.raises(ToolInvocationError):
        _orchestrator(root, runner).run_codegen()

    assert (root / "pkg/operator/generated/listers/kept.go").exists()
    assert not list(root.glob(".codegen-*"))


def test_run_codegen_requires_generator_script(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    config = PresubmitConfig(root=root)
    config.codegen.codegen_pkg = str(root / "nowhere")

    orchestrator = Orchestrator(root, config, runner=RecordingRunner(), toolchain=_toolchain())

    with pytest.raises(ToolInvocationError, match="code-generator script not found"):
        orchestrator.run_codegen()


def test_run_all_skips_codegen_when_gate_allows(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()
    gate = StubGate(skip=True)

    _orchestrator(root, runner, gate=gate).run_all()

    assert gate.calls == [
        (
            root / "pkg/operator/apis",
            "https://github.com/GoogleCloudPlatform/prometheus-engine",
            "pkg/operator/apis",
        )
    ]
    assert [call[0] for call in runner.calls] == ["go", "go", "go", "controller-gen", "po-docgen"]
    assert runner.calls[0] == ["go", "mod", "tidy"]
    assert (root / "manifests" / "operator.yaml").exists()
    assert (root / "doc" / "api.md").exists()


def test_run_all_runs_codegen_when_gate_finds_changes(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    _install_codegen_script(root)
    runner = RecordingRunner()
    runner.on(("bash",), _fake_generators)

    _orchestrator(root, runner, gate=StubGate(skip=False)).run_all()

    commands = runner.commands()
    assert commands[0] == "go mod vendor"
    assert commands[1].startswith("bash ")
    assert commands.index("go mod tidy") > 2


def test_run_all_stops_at_first_failure(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()

    def tidy_fails(args: List[str], cwd: Path) -> None:
        raise ToolInvocationError(args, 1)

    runner.on(("go", "mod", "tidy"), tidy_fails)

    with pytest.raises(ToolInvocationError):
        _orchestrator(root, runner, gate=StubGate(skip=True)).run_all()

    assert runner.commands() == ["go mod tidy"]
    assert not (root / "manifests").exists()


def test_run_step_dispatches_and_rejects_unknown(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()
    orchestrator = _orchestrator(root, runner)

    orchestrator.run_step("format")

    assert runner.commands()[0] == "go mod tidy"
    with pytest.raises(UnsupportedStepError) as excinfo:
        orchestrator.run_step("bogus")
    assert excinfo.value.step == "bogus"
    assert str(excinfo.value) == 'unsupported command: "bogus".'


def test_missing_tool_fails_the_step(operator_repo: RepoBuilder) -> None:
    root = operator_repo.path()
    runner = RecordingRunner()
    orchestrator = _orchestrator(root, runner, toolchain=_toolchain(**{"controller-gen": None}))

    with pytest.raises(MissingToolError, match="controller-gen"):
        orchestrator.run_crdgen()
    assert runner.calls == []
