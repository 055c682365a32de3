"""Pipeline orchestration for the presubmit steps."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config import ManifestTarget, PresubmitConfig, load_config
from .gate import RegenGate
from .logging import get_logger, log_step
from .manifests import CRDPostProcessor, ManifestCombiner, rule_for
from .tools.runner import CommandRunner, ToolInvocationError, run_command
from .tools.toolchain import BASH, CONTROLLER_GEN, GIT, GO, PO_DOCGEN, Toolchain

STEP_NAMES = ("all", "codegen", "crdgen", "diff", "docgen", "manifests", "format", "test")

DIFF_FOUND_MESSAGE = "diff found - ensure regenerated code is up-to-date and committed."


class VerificationFailure(RuntimeError):
    """Raised when tracked generated artifacts differ from the committed state."""


class UnsupportedStepError(ValueError):
    """Raised for a step name the orchestrator does not know."""

    def __init__(self, step: str) -> None:
        super().__init__(f'unsupported command: "{step}".')
        self.step = step


class Orchestrator:
    """Runs presubmit steps against one repository checkout.

    External tools arrive already resolved through ``toolchain``; commands are
    executed through ``runner`` with the repository root as working directory.
    """

    def __init__(
        self,
        repo_root: Path,
        config: PresubmitConfig | None = None,
        *,
        toolchain: Toolchain | None = None,
        runner: CommandRunner | None = None,
        gate: RegenGate | None = None,
        combiner: ManifestCombiner | None = None,
    ) -> None:
        self.root = Path(repo_root).expanduser().resolve()
        self.config = config or load_config(self.root)
        self.toolchain = toolchain or Toolchain.from_config(self.config.tools)
        self._runner = runner or run_command
        self._gate = gate
        self._combiner = combiner
        self.logger = get_logger("orchestrator")
        self._steps: Dict[str, Callable[[], object]] = {
            "all": self.run_all,
            "codegen": self.run_codegen,
            "crdgen": self.run_crdgen,
            "diff": self.run_diff,
            "docgen": self.run_docgen,
            "manifests": self.run_manifests,
            "format": self.run_format,
            "test": self.run_test,
        }

    @property
    def gate(self) -> RegenGate:
        if self._gate is None:
            git = self.toolchain.paths.get(GIT) or self.config.tools.git
            self._gate = RegenGate(
                self._runner,
                git=git,
                on_clone_failure=self.config.upstream.on_clone_failure,
            )
        return self._gate

    @property
    def combiner(self) -> ManifestCombiner:
        if self._combiner is None:
            self._combiner = ManifestCombiner.from_file(self.root / self.config.manifests.boilerplate)
        return self._combiner

    def run_step(self, name: str) -> object:
        """Run the step called ``name``."""
        try:
            step = self._steps[name]
        except KeyError:
            raise UnsupportedStepError(name) from None
        return step()

    # ------------------------------------------------------------------
    # Steps

    def run_all(self) -> None:
        """Gate codegen, then format, crdgen, manifests and docgen in that order."""
        codegen = self.config.codegen
        # The gate is only an optimisation; codegen is slow so it is skipped when
        # the API tree matches upstream.
        if self.gate.should_skip(self.root / codegen.api_dir, self.config.upstream.url, codegen.api_dir):
            self.logger.info("API types unchanged; skipping codegen")
        else:
            self.run_codegen()
        self.run_format()
        self.run_crdgen()
        self.run_manifests()
        self.run_docgen()

    def run_codegen(self) -> None:
        """Regenerate client, lister, informer and deepcopy code from the API types."""
        log_step(self.logger, "regenerating CRD k8s go code")
        go = self.toolchain.require(GO)
        bash = self.toolchain.require(BASH)
        codegen = self.config.codegen

        # Refresh vendored dependencies so the generator script is present.
        self._run([go, "mod", "vendor"])
        script = self._codegen_script()
        if not script.is_file():
            raise ToolInvocationError(
                [str(script)], None, detail="code-generator script not found; set CODEGEN_PKG"
            )

        output_base = Path(tempfile.mkdtemp(prefix=".codegen-", dir=str(self.root)))
        try:
            common = [
                f"{codegen.module}/{codegen.generated_dir}",
                f"{codegen.module}/{codegen.api_dir}",
                codegen.groups,
                "--go-header-file",
                str(self.root / codegen.header_file),
                "--output-base",
                str(output_base),
            ]
            # deepcopy runs on its own since it rejects --plural-exceptions.
            self._run([bash, str(script), "deepcopy", *common])
            generators = [bash, str(script), "client,informer,lister", *common]
            if codegen.plural_exceptions:
                generators += ["--plural-exceptions", ",".join(codegen.plural_exceptions)]
            self._run(generators)
            self._install_generated(output_base / codegen.module)
        finally:
            shutil.rmtree(output_base, ignore_errors=True)

    def run_crdgen(self) -> Path:
        """Regenerate CRD YAMLs and the combined CRD manifest."""
        log_step(self.logger, "regenerating CRD yamls")
        controller_gen = self.toolchain.require(CONTROLLER_GEN)
        crd_dir = self.config.crdgen.crd_dir
        self._run(
            [
                controller_gen,
                "crd",
                f"paths=./{self.config.codegen.api_dir}/...",
                f"output:crd:dir={crd_dir}",
            ]
        )
        processor = CRDPostProcessor(self.combiner.boilerplate)
        processed = processor.process_dir(self.root / crd_dir)
        self.logger.debug("Post-processed %d CRD files", len(processed))
        return self._combine(self._crd_target())

    def run_manifests(self) -> List[Path]:
        """Combine every configured fragment directory into its manifest."""
        log_step(self.logger, "regenerating example yamls")
        return [self._combine(target) for target in self.config.manifests.targets]

    def run_docgen(self) -> Path:
        """Generate API documentation and apply product branding."""
        log_step(self.logger, "generating API documentation")
        po_docgen = self.toolchain.require(PO_DOCGEN)
        docgen = self.config.docgen
        rendered = self._run([po_docgen, "api", docgen.source], capture_output=True)
        output = self.root / docgen.output
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(rendered.replace(docgen.placeholder, docgen.branding), encoding="utf-8")
        return output

    def run_format(self) -> None:
        """Tidy and vendor modules, then format Go sources."""
        log_step(self.logger, "formatting sources")
        go = self.toolchain.require(GO)
        self._run([go, "mod", "tidy"])
        self._run([go, "mod", "vendor"])
        self._run([go, "fmt", "./..."])

    def run_test(self) -> List[str]:
        """Run unit tests, excluding end-to-end and benchmark packages."""
        log_step(self.logger, "running unit tests")
        go = self.toolchain.require(GO)
        listed = self._run([go, "list", "./..."], capture_output=True)
        packages = [
            line.strip()
            for line in listed.splitlines()
            if line.strip() and not any(marker in line for marker in self.config.test.exclude)
        ]
        if not packages:
            self.logger.warning("No Go packages left to test after exclusions")
            return []
        self._run([go, "test", *packages])
        return packages

    def run_diff(self) -> None:
        """Fail with ``VerificationFailure`` when tracked artifacts have uncommitted changes."""
        log_step(self.logger, "checking for uncommitted changes")
        git = self.toolchain.require(GIT)
        try:
            self._run([git, "diff", "-s", "--exit-code", "--", *self.config.diff.paths])
        except ToolInvocationError as exc:
            if exc.returncode == 1:
                raise VerificationFailure(DIFF_FOUND_MESSAGE) from exc
            raise
        self.logger.info("No uncommitted changes to generated artifacts")

    # ------------------------------------------------------------------
    # Internals

    def _run(self, args: List[str], *, capture_output: bool = False) -> str:
        self.logger.debug("Running %s", " ".join(args))
        return self._runner(args, cwd=self.root, capture_output=capture_output)

    def _combine(self, target: ManifestTarget) -> Path:
        dest = self.root / target.dest
        rule = rule_for(target.rule, target.pattern)
        fragments = self.combiner.combine(self.root / target.source, rule, dest)
        self.logger.info("Wrote %s from %d fragments", target.dest, len(fragments))
        return dest

    def _crd_target(self) -> ManifestTarget:
        crd_dir = Path(self.config.crdgen.crd_dir)
        for target in self.config.manifests.targets:
            if Path(target.source) == crd_dir:
                return target
        return ManifestTarget(source=str(crd_dir), dest="manifests/setup.yaml")

    def _codegen_script(self) -> Path:
        configured: Optional[str] = self.config.codegen.codegen_pkg
        if configured:
            package = Path(configured)
            if not package.is_absolute():
                package = self.root / package
        else:
            vendored = self.root / "vendor" / "k8s.io" / "code-generator"
            package = vendored if vendored.is_dir() else self.root.parent / "code-generator"
        return package / "generate-groups.sh"

    def _install_generated(self, emitted: Path) -> None:
        """Move generator output from ``emitted`` into the repository."""
        dest = self.root / self.config.codegen.generated_dir
        fresh = emitted / self.config.codegen.generated_dir
        if fresh.is_dir():
            _replace_dir(fresh, dest)
        else:
            self.logger.warning("Generators produced no %s tree", self.config.codegen.generated_dir)
            shutil.rmtree(dest, ignore_errors=True)
        if emitted.is_dir():
            # Remaining output, e.g. zz_generated.deepcopy.go next to the API types.
            shutil.copytree(emitted, self.root, dirs_exist_ok=True)


def _replace_dir(source: Path, dest: Path) -> None:
    """Swap ``source`` into ``dest``, discarding the previous tree."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    holding = Path(tempfile.mkdtemp(prefix=f".{dest.name}-old-", dir=str(dest.parent)))
    previous = holding / dest.name
    try:
        if dest.exists():
            os.replace(dest, previous)
        try:
            os.replace(source, dest)
        except OSError:
            if previous.exists():
                os.replace(previous, dest)
            raise
    finally:
        shutil.rmtree(holding, ignore_errors=True)


__all__ = [
    "DIFF_FOUND_MESSAGE",
    "Orchestrator",
    "STEP_NAMES",
    "UnsupportedStepError",
    "VerificationFailure",
]
