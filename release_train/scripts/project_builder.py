"""
Project builder for release train scripts.

Runs the build, deploy and documentation publishing commands of the project
being released, and bumps the project's own version across its modules.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional

from . import config
from .pom_document import PomDocument
from .project_pom_updater import ProjectPomUpdater
from .releaser_config import ReleaserConfig
from .versions import Versions

logger = logging.getLogger(__name__)


class BuildError(Exception):
    """Raised when a command fails, times out or leaves broken output."""
    pass


class ProcessExecutor:
    """
    Run shell commands in the configured working directory.

    Commands are executed through ``bash -c`` so that they may use pipes,
    redirection and ``&&`` the same way they would in a terminal.
    """

    def __init__(self, releaser_config: ReleaserConfig):
        self.working_dir = releaser_config.working_dir
        self.wait_time_minutes = releaser_config.maven.wait_time_minutes

    def run(self, command: str, working_dir: Optional[str] = None) -> str:
        """
        Run a command and return its standard output.

        Args:
            command: Shell command line
            working_dir: Directory to run in (defaults to the configured one)

        Returns:
            Captured standard output

        Raises:
            BuildError: If the command times out or exits with non-zero code
        """
        cwd = working_dir or self.working_dir
        logger.info(f"Running [{command}] in {cwd}")
        try:
            result = subprocess.run(
                ["bash", "-c", command],
                capture_output=True,
                text=True,
                cwd=cwd,
                timeout=self.wait_time_minutes * 60,
            )
        except subprocess.TimeoutExpired:
            raise BuildError(
                f"Process waiting time of [{self.wait_time_minutes}] minutes exceeded. "
                f"Command [{command}] was killed."
            )
        except OSError as e:
            raise BuildError(f"Failed to start [{command}]: {e}")

        if result.returncode != 0:
            logger.error(f"[{command}] failed:\n{result.stderr}")
            raise BuildError(
                f"The process has exited with exit code [{result.returncode}]. "
                f"Command [{command}]: {result.stderr.strip()}"
            )
        return result.stdout


class ProjectBuilder:
    """
    Build, deploy and publish the documentation of a project.

    Example:
        builder = ProjectBuilder(releaser_config)
        builder.build()
        builder.deploy()
        builder.publish_docs("1.1.0.RELEASE")
    """

    def __init__(
        self,
        releaser_config: ReleaserConfig,
        executor: Optional[ProcessExecutor] = None,
    ):
        self.config = releaser_config
        self.executor = executor or ProcessExecutor(releaser_config)

    def build(self) -> None:
        """
        Run the build command and check the generated documentation.

        Raises:
            BuildError: If the build fails or an HTML file holds an unresolved tag
        """
        self.executor.run(self.config.maven.build_command)
        self.assert_no_unresolved_tags()
        logger.info("Project was successfully built")

    def deploy(self) -> None:
        self.executor.run(self.config.maven.deploy_command)
        logger.info("Project was successfully deployed")

    def publish_docs(self, version: str) -> None:
        """Run every publish command with ``{{version}}`` substituted."""
        for command in self.config.maven.publish_docs_commands:
            self.executor.run(command.replace(config.VERSION_PLACEHOLDER, version))
        logger.info(f"Docs were successfully published for version [{version}]")

    def bump_versions(self, version: str) -> None:
        """
        Set the root project's version across its module tree.

        The root descriptor's own version and every module parent pointing
        at it are rewritten; nothing else is touched.
        """
        project_root = Path(self.config.working_dir)
        root_pom = PomDocument.read(project_root / config.POM_FILE)
        versions = Versions().set_version(root_pom.artifact_id, version)
        logger.info(f"Bumping [{root_pom.artifact_id}] to [{version}]")
        ProjectPomUpdater(self.config).update_project_from_release_train(
            project_root, versions, validate=False
        )

    def assert_no_unresolved_tags(self) -> None:
        offending = self._html_files_with_unresolved_tags()
        if offending:
            raise BuildError(
                f"File [{offending[0]}] contains a tag that wasn't resolved properly"
                + (f" (and {len(offending) - 1} more)" if len(offending) > 1 else "")
            )

    def _html_files_with_unresolved_tags(self) -> List[str]:
        offending = []
        for dir_path, dir_names, file_names in os.walk(self.config.working_dir):
            dir_names.sort()
            for file_name in sorted(file_names):
                if not file_name.endswith(".html"):
                    continue
                path = os.path.join(dir_path, file_name)
                with open(path, "r", encoding="utf-8", errors="replace") as f:
                    if config.UNRESOLVED_TAG_MARKER in f.read():
                        offending.append(path)
        return offending
