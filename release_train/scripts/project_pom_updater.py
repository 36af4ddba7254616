"""
Descriptor tree updater for release train propagation.

This module walks every pom.xml under a project root, applies the versions
of a release train to each of them and then verifies that a release did
not leave any snapshot version behind.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional

from . import config
from .pom_document import PomDocument
from .pom_updater import PomUpdater, PomUpdateResult, SnapshotLeftover
from .release_train_reader import ReleaseTrainReader, source_from_config
from .releaser_config import ReleaserConfig
from .versions import Versions

logger = logging.getLogger(__name__)


class UnresolvedVersionError(Exception):
    """Raised when a snapshot version survives the update of a release."""

    def __init__(self, leftovers: List[SnapshotLeftover]):
        self.leftovers = leftovers
        lines = "\n".join(f"  {leftover}" for leftover in leftovers)
        super().__init__(
            "After updating the project to a release train there are still "
            f"snapshot versions left:\n{lines}\n"
            "Add the matching project to the release train (or to fixed_versions) "
            "or update the descriptor manually."
        )


class ProjectPomUpdater:
    """
    Propagate release train versions through a project's module tree.

    Example:
        updater = ProjectPomUpdater(load_releaser_config())
        versions = updater.retrieve_versions_from_release_train()
        updater.update_project_from_release_train("spring-cloud-sleuth", versions)
    """

    def __init__(
        self,
        releaser_config: ReleaserConfig,
        reader: Optional[ReleaseTrainReader] = None,
        pom_updater: Optional[PomUpdater] = None,
    ):
        """
        Initialize the updater.

        Args:
            releaser_config: Release train location and fixed versions
            reader: ReleaseTrainReader, a default one if None
            pom_updater: PomUpdater applied to each descriptor, a default one if None
        """
        self.config = releaser_config
        self.reader = reader or ReleaseTrainReader()
        self.pom_updater = pom_updater or PomUpdater()

    def retrieve_versions_from_release_train(self) -> Versions:
        """
        Read the configured release train and apply fixed version overrides.

        Raises:
            ReleaseTrainNotFoundError: If the release train cannot be read
        """
        versions = self.reader.read(source_from_config(self.config))
        for name, version in self.config.fixed_versions.items():
            logger.info(f"Fixing version of [{name}] to [{version}]")
            versions.set_version(name, version)
        logger.info(f"Retrieved the following versions:\n{versions}")
        return versions

    def update_project_from_release_train(
        self, project_root, versions: Versions, validate: bool = True
    ) -> PomUpdateResult:
        """
        Update every descriptor under project_root with the given versions.

        When the versions are a release (no snapshots), every descriptor is
        read back afterwards and any remaining snapshot version fails the
        whole operation.

        Args:
            project_root: Directory containing the project's root pom.xml
            versions: Registry to apply
            validate: Whether to check for leftover snapshot versions

        Returns:
            PomUpdateResult with the rewritten files and changed elements

        Raises:
            PomError: If a descriptor cannot be read or written
            UnresolvedVersionError: If a release leaves snapshot versions
        """
        project_root = Path(project_root)
        result = PomUpdateResult()

        for pom_path in self.find_poms(project_root):
            result = result.merge(self._update_pom(pom_path, versions))

        logger.info(
            f"Updated {len(result.files_modified)} descriptor(s) under {project_root} "
            f"with {len(result.changes)} change(s)"
        )

        if not validate:
            return result
        if versions.is_snapshot():
            logger.info("Release train contains snapshots, skipping snapshot validation")
        else:
            self.validate_no_snapshots(project_root)

        return result

    def validate_no_snapshots(self, project_root) -> None:
        """
        Fail if any descriptor under project_root still holds a snapshot version.

        Raises:
            UnresolvedVersionError: Listing every offending element
        """
        leftovers: List[SnapshotLeftover] = []
        for pom_path in self.find_poms(Path(project_root)):
            leftovers.extend(self.pom_updater.snapshot_leftovers(PomDocument.read(pom_path)))

        if leftovers:
            for leftover in leftovers:
                logger.error(f"Snapshot version left after update: {leftover}")
            raise UnresolvedVersionError(leftovers)

    def find_poms(self, project_root: Path) -> Iterator[Path]:
        """
        Yield every pom.xml under project_root, depth first.

        Hidden directories and build output are not searched.
        """
        for dir_path, dir_names, file_names in os.walk(project_root):
            dir_names[:] = sorted(
                name for name in dir_names
                if not name.startswith(".") and name not in config.SKIPPED_DIRECTORIES
            )
            if config.POM_FILE in file_names:
                yield Path(dir_path) / config.POM_FILE

    def _update_pom(self, pom_path: Path, versions: Versions) -> PomUpdateResult:
        pom = PomDocument.read(pom_path)
        changes = self.pom_updater.update_pom(pom, versions)
        if not pom.write():
            logger.debug(f"No changes for {pom_path}")
            return PomUpdateResult()
        logger.info(f"Updated {pom_path} ({len(changes)} change(s))")
        return PomUpdateResult(files_modified=[str(pom_path)], changes=changes)
