"""
Bootstrap workflow.

Runs the stages of one invocation strictly in order:

    START -> TOOLS_CHECKED -> CONFIGURED -> BUILT -> [RAN] -> DONE

A failure in any stage moves the workflow to FAILED and no later stage runs.
"""

import enum
import logging
from typing import Callable, List, Optional

from cmkboot.backends.cmake import CMakeBuildOrchestrator
from cmkboot.config.parser import BuildConfig, Workspace
from cmkboot.core.download import DownloadProgress
from cmkboot.core.environment import SearchPath
from cmkboot.core.exceptions import CmkBootError
from cmkboot.core.platform import PlatformInfo, detect_platform
from cmkboot.toolchain.provisioner import ConfirmFn, EnvironmentProvisioner
from cmkboot.toolchain.registry import ToolRegistry

logger = logging.getLogger(__name__)


class Stage(enum.Enum):
    START = "start"
    TOOLS_CHECKED = "tools-checked"
    CONFIGURED = "configured"
    BUILT = "built"
    RAN = "ran"
    DONE = "done"
    FAILED = "failed"


class BootstrapWorkflow:
    """
    Provision tools, configure, build and optionally run a project.

    Example:
        >>> workflow = BootstrapWorkflow(config, workspace, confirm=prompt_yes_no)
        >>> exit_code = workflow.run()
        >>> workflow.stage
        <Stage.DONE: 'done'>
    """

    def __init__(
        self,
        config: BuildConfig,
        workspace: Workspace,
        confirm: ConfirmFn,
        registry: Optional[ToolRegistry] = None,
        search_path: Optional[SearchPath] = None,
        platform: Optional[PlatformInfo] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
        skip_provision: bool = False,
        run_program: bool = True,
    ):
        self.config = config
        self.workspace = workspace
        self.confirm = confirm
        self.platform = platform or detect_platform()
        self.registry = registry
        self.search_path = (
            search_path if search_path is not None else SearchPath.from_environ()
        )
        self.progress_callback = progress_callback
        self.skip_provision = skip_provision
        self.run_program = run_program and bool(config.program_name)

        self.stage = Stage.START
        self.history: List[Stage] = [Stage.START]
        self.failure: Optional[CmkBootError] = None

    def run(self) -> int:
        """
        Execute every stage.

        Returns:
            Exit status of the program if it was run, 0 otherwise

        Raises:
            CmkBootError: The first failure, after moving to Stage.FAILED
        """
        try:
            self._provision()
            self._advance(Stage.TOOLS_CHECKED)

            orchestrator = CMakeBuildOrchestrator(
                self.workspace, self.search_path, platform=self.platform
            )
            orchestrator.configure(self.config)
            self._advance(Stage.CONFIGURED)

            orchestrator.build(self.config)
            self._advance(Stage.BUILT)

            exit_code = 0
            if self.run_program:
                exit_code = orchestrator.run_program(self.config)
                self._advance(Stage.RAN)

            self._advance(Stage.DONE)
            return exit_code

        except CmkBootError as e:
            self.failure = e
            logger.debug(f"Workflow failed after {self.stage.value}: {e}")
            self._advance(Stage.FAILED)
            raise

    def _provision(self) -> None:
        if self.skip_provision:
            logger.info("Skipping tool provisioning")
            return

        registry = self.registry or ToolRegistry(platform=self.platform.platform_string())
        provisioner = EnvironmentProvisioner(
            self.workspace,
            confirm=self.confirm,
            search_path=self.search_path,
            progress_callback=self.progress_callback,
        )
        self.search_path = provisioner.provision_all(registry)

    def _advance(self, stage: Stage) -> None:
        self.stage = stage
        self.history.append(stage)


__all__ = ["Stage", "BootstrapWorkflow"]
