"""Configuration loading for presubmit (.presubmit.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".presubmit.yml"

CLONE_FAILURE_POLICIES = ("regenerate", "skip")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class UpstreamConfig:
    """Reference repository used by the codegen gate."""

    url: str = "https://github.com/GoogleCloudPlatform/prometheus-engine"
    on_clone_failure: str = "regenerate"


@dataclass
class CodegenConfig:
    """Settings for the k8s client/lister/informer/deepcopy generators."""

    module: str = "github.com/GoogleCloudPlatform/prometheus-engine"
    api_dir: str = "pkg/operator/apis"
    generated_dir: str = "pkg/operator/generated"
    groups: str = "monitoring:v1"
    header_file: str = "hack/boilerplate.go.txt"
    plural_exceptions: List[str] = field(
        default_factory=lambda: [
            "Rules:Rules",
            "ClusterRules:ClusterRules",
            "GlobalRules:GlobalRules",
        ]
    )
    codegen_pkg: Optional[str] = None


@dataclass
class CrdgenConfig:
    """Settings for CRD schema generation."""

    crd_dir: str = "cmd/operator/deploy/crds"


@dataclass
class ManifestTarget:
    """One combined manifest produced from a directory of fragments."""

    source: str
    dest: str
    rule: str = "yaml"
    pattern: Optional[str] = None


def _default_targets() -> List[ManifestTarget]:
    return [
        ManifestTarget(source="cmd/operator/deploy/crds", dest="manifests/setup.yaml"),
        ManifestTarget(
            source="cmd/operator/deploy/operator",
            dest="manifests/operator.yaml",
            rule="numbered",
        ),
        ManifestTarget(
            source="cmd/operator/deploy/rule-evaluator",
            dest="manifests/rule-evaluator.yaml",
            rule="numbered",
        ),
    ]


@dataclass
class ManifestsConfig:
    """Boilerplate and combination targets for generated manifests."""

    boilerplate: str = "hack/boilerplate.txt"
    targets: List[ManifestTarget] = field(default_factory=_default_targets)


@dataclass
class DocgenConfig:
    """API documentation generation settings."""

    source: str = "pkg/operator/apis/monitoring/v1/types.go"
    output: str = "doc/api.md"
    placeholder: str = "Prometheus Operator"
    branding: str = "GMP CRDs"


@dataclass
class UnitTestsConfig:
    """Unit test selection."""

    exclude: List[str] = field(default_factory=lambda: ["operator/e2e", "export/bench"])


@dataclass
class DiffConfig:
    """Paths checked for uncommitted drift by the diff step."""

    paths: List[str] = field(
        default_factory=lambda: ["doc", "go.mod", "go.sum", "*.go", "*.yaml"]
    )


@dataclass
class ToolsConfig:
    """Names or paths of the external binaries the pipeline drives."""

    go: str = "go"
    git: str = "git"
    bash: str = "bash"
    controller_gen: str = "controller-gen"
    po_docgen: str = "po-docgen"


@dataclass
class PresubmitConfig:
    """Represents the settings defined in .presubmit.yml."""

    root: Path
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    codegen: CodegenConfig = field(default_factory=CodegenConfig)
    crdgen: CrdgenConfig = field(default_factory=CrdgenConfig)
    manifests: ManifestsConfig = field(default_factory=ManifestsConfig)
    docgen: DocgenConfig = field(default_factory=DocgenConfig)
    test: UnitTestsConfig = field(default_factory=UnitTestsConfig)
    diff: DiffConfig = field(default_factory=DiffConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)


def load_config(
    config_path: Path, *, environ: Mapping[str, str] | None = None
) -> PresubmitConfig:
    """Load configuration from disk, applying environment overrides."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    config = PresubmitConfig(root=root)

    upstream_data = _as_dict(data.get("upstream"))
    config.upstream.url = _as_str(upstream_data.get("url")) or config.upstream.url
    config.upstream.on_clone_failure = (
        _as_str(upstream_data.get("on_clone_failure")) or config.upstream.on_clone_failure
    )

    codegen_data = _as_dict(data.get("codegen"))
    codegen = config.codegen
    codegen.module = _as_str(codegen_data.get("module")) or codegen.module
    codegen.api_dir = _as_str(codegen_data.get("api_dir")) or codegen.api_dir
    codegen.generated_dir = _as_str(codegen_data.get("generated_dir")) or codegen.generated_dir
    codegen.groups = _as_str(codegen_data.get("groups")) or codegen.groups
    codegen.header_file = _as_str(codegen_data.get("header_file")) or codegen.header_file
    if "plural_exceptions" in codegen_data:
        codegen.plural_exceptions = _as_str_list(codegen_data.get("plural_exceptions"))
    codegen.codegen_pkg = _as_str(codegen_data.get("codegen_pkg"))

    crdgen_data = _as_dict(data.get("crdgen"))
    config.crdgen.crd_dir = _as_str(crdgen_data.get("crd_dir")) or config.crdgen.crd_dir

    manifests_data = _as_dict(data.get("manifests"))
    config.manifests.boilerplate = (
        _as_str(manifests_data.get("boilerplate")) or config.manifests.boilerplate
    )
    if "targets" in manifests_data:
        config.manifests.targets = _parse_targets(manifests_data.get("targets"))

    docgen_data = _as_dict(data.get("docgen"))
    docgen = config.docgen
    docgen.source = _as_str(docgen_data.get("source")) or docgen.source
    docgen.output = _as_str(docgen_data.get("output")) or docgen.output
    docgen.placeholder = _as_str(docgen_data.get("placeholder")) or docgen.placeholder
    docgen.branding = _as_str(docgen_data.get("branding")) or docgen.branding

    test_data = _as_dict(data.get("test"))
    if "exclude" in test_data:
        config.test.exclude = _as_str_list(test_data.get("exclude"))

    diff_data = _as_dict(data.get("diff"))
    if "paths" in diff_data:
        config.diff.paths = _as_str_list(diff_data.get("paths"))

    tools_data = _as_dict(data.get("tools"))
    tools = config.tools
    tools.go = _as_str(tools_data.get("go")) or tools.go
    tools.git = _as_str(tools_data.get("git")) or tools.git
    tools.bash = _as_str(tools_data.get("bash")) or tools.bash
    tools.controller_gen = _as_str(tools_data.get("controller_gen")) or tools.controller_gen
    tools.po_docgen = _as_str(tools_data.get("po_docgen")) or tools.po_docgen

    _apply_environment(config, env)

    if config.upstream.on_clone_failure not in CLONE_FAILURE_POLICIES:
        raise ConfigError(
            f"upstream.on_clone_failure must be one of {', '.join(CLONE_FAILURE_POLICIES)}; "
            f"got {config.upstream.on_clone_failure!r}"
        )
    return config


def _apply_environment(config: PresubmitConfig, env: Mapping[str, str]) -> None:
    codegen_pkg = env.get("CODEGEN_PKG")
    if codegen_pkg:
        config.codegen.codegen_pkg = codegen_pkg
    upstream_url = env.get("PRESUBMIT_UPSTREAM_URL")
    if upstream_url:
        config.upstream.url = upstream_url
    policy = env.get("PRESUBMIT_ON_CLONE_FAILURE")
    if policy:
        config.upstream.on_clone_failure = policy.strip().lower()


def _parse_targets(value: Any) -> List[ManifestTarget]:
    if not isinstance(value, list):
        raise ConfigError("manifests.targets must be a list")
    targets: List[ManifestTarget] = []
    for index, raw in enumerate(value):
        item = _as_dict(raw)
        source = _as_str(item.get("source"))
        dest = _as_str(item.get("dest"))
        if not source or not dest:
            raise ConfigError(f"manifests.targets[{index}] requires 'source' and 'dest'")
        targets.append(
            ManifestTarget(
                source=source,
                dest=dest,
                rule=_as_str(item.get("rule")) or "yaml",
                pattern=_as_str(item.get("pattern")),
            )
        )
    return targets


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CLONE_FAILURE_POLICIES",
    "CONFIG_FILENAME",
    "CodegenConfig",
    "ConfigError",
    "CrdgenConfig",
    "DiffConfig",
    "DocgenConfig",
    "ManifestTarget",
    "ManifestsConfig",
    "PresubmitConfig",
    "UnitTestsConfig",
    "ToolsConfig",
    "UpstreamConfig",
    "load_config",
]
