"""
Release train reader.

Reads the versions pinned by a release train repository at a given branch
or tag. The train carries:

- the platform version, as the parent version of the starter parent pom
- the shared build version, as the parent version of the dependencies pom
- one ``<project>.version`` property per project in the dependencies pom
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import Callable, List

from . import config
from .git_operations import BranchError, CloneError, GitOperations
from .pom_document import PomDocument, PomError
from .versions import ProjectVersion, Versions

logger = logging.getLogger(__name__)


class ReleaseTrainNotFoundError(Exception):
    """Raised when the release train repository, branch or descriptor is missing."""
    pass


@dataclass
class ReleaseTrainSource:
    """Locates a release train: repository plus branch or tag."""
    repo_url: str
    branch: str = config.DEFAULT_RELEASE_TRAIN_BRANCH
    starter_parent_pom: str = config.STARTER_PARENT_POM
    dependencies_pom: str = config.DEPENDENCIES_POM

    def __str__(self) -> str:
        return f"{self.repo_url}@{self.branch}"


class ReleaseTrainReader:
    """
    Clone a release train repository and read its versions.

    Example:
        reader = ReleaseTrainReader()
        versions = reader.read(ReleaseTrainSource(
            repo_url="https://github.com/spring-cloud/spring-cloud-release",
            branch="vDalston.SR1",
        ))
    """

    def __init__(
        self,
        git_factory: Callable[[str, str], GitOperations] = GitOperations,
    ):
        """
        Args:
            git_factory: Builds GitOperations for (repo_url, work_dir)
        """
        self.git_factory = git_factory

    def read(self, source: ReleaseTrainSource) -> Versions:
        """
        Read versions from the release train at the given source.

        Raises:
            ReleaseTrainNotFoundError: If the repository, branch or a
                descriptor cannot be found
        """
        temp_dir = tempfile.mkdtemp(prefix="release-train-")
        work_dir = os.path.join(temp_dir, "release-train")
        try:
            git_ops = self.git_factory(source.repo_url, work_dir)
            try:
                git_ops.clone()
            except CloneError as e:
                raise ReleaseTrainNotFoundError(
                    f"Cannot clone release train repository {source.repo_url}: {e}"
                ) from e
            try:
                git_ops.checkout(source.branch)
            except BranchError as e:
                raise ReleaseTrainNotFoundError(
                    f"No branch or tag [{source.branch}] in release train "
                    f"repository {source.repo_url}"
                ) from e

            logger.info(
                f"Reading release train versions from {source} at {git_ops.get_commit_sha()}"
            )
            return self.read_directory(work_dir, source)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def read_directory(self, work_dir: str, source: ReleaseTrainSource) -> Versions:
        """Read versions from an already checked out release train."""
        starter_parent = self._read_pom(work_dir, source.starter_parent_pom, source)
        dependencies = self._read_pom(work_dir, source.dependencies_pom, source)

        platform_version = self._parent_version(starter_parent, source)
        build_version = self._parent_version(dependencies, source)
        projects = self._projects(dependencies)

        versions = Versions.for_platform_and_build(platform_version, build_version, projects)
        logger.debug(f"Release train versions:\n{versions}")
        return versions

    def _read_pom(self, work_dir: str, relative_path: str, source: ReleaseTrainSource) -> PomDocument:
        path = os.path.join(work_dir, relative_path)
        if not os.path.isfile(path):
            raise ReleaseTrainNotFoundError(
                f"Release train {source} has no descriptor {relative_path}"
            )
        try:
            return PomDocument.read(path)
        except PomError as e:
            raise ReleaseTrainNotFoundError(
                f"Release train {source} has an unreadable descriptor {relative_path}: {e}"
            ) from e

    def _parent_version(self, pom: PomDocument, source: ReleaseTrainSource) -> str:
        if pom.parent is None or not pom.parent.version:
            raise ReleaseTrainNotFoundError(
                f"Descriptor {pom.path.name} of release train {source} declares no parent version"
            )
        return pom.parent.version

    def _projects(self, pom: PomDocument) -> List[ProjectVersion]:
        suffix = config.VERSION_PROPERTY_SUFFIX
        return [
            ProjectVersion(key[: -len(suffix)], value)
            for key, value in pom.properties.items()
            if key.endswith(suffix) and value
        ]


def source_from_config(releaser_config) -> ReleaseTrainSource:
    """Build a ReleaseTrainSource from a ReleaserConfig."""
    return ReleaseTrainSource(
        repo_url=releaser_config.git.release_train_url,
        branch=releaser_config.pom.branch,
        starter_parent_pom=releaser_config.pom.starter_parent_pom,
        dependencies_pom=releaser_config.pom.dependencies_pom,
    )
