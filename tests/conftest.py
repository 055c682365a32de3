from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.repo_builder import RepoBuilder

# Trimmed prometheus-engine layout matching the default .presubmit.yml settings.
OPERATOR_LAYOUT = {
    "pkg/operator/apis/monitoring/v1/types.go": "package v1\n",
    "cmd/operator/deploy/crds/monitoring.googleapis.com_rules.yaml": "kind: CustomResourceDefinition\n",
    "cmd/operator/deploy/operator/00-namespace.yaml": "kind: Namespace\n",
    "cmd/operator/deploy/operator/01-deployment.yaml": "# operator\nkind: Deployment\n",
    "cmd/operator/deploy/operator/kustomization.yaml": "resources: []\n",
    "cmd/operator/deploy/rule-evaluator/00-config.yaml": "kind: ConfigMap\n",
}


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Empty throwaway repository."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def operator_repo(repo_builder: RepoBuilder) -> RepoBuilder:
    """Repository seeded with boilerplate, API types and deploy fragments."""
    repo_builder.write_boilerplate()
    repo_builder.write(OPERATOR_LAYOUT)
    return repo_builder
