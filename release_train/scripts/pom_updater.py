"""
Single descriptor updater for release train propagation.

Applies a version registry to one pom.xml: the project's own version,
its parent version and any ``<name>.version`` property of a tracked
project. Also reports versions that are still snapshots after an update.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from . import config
from .pom_document import (
    PARENT_VERSION_PATH,
    PROPERTIES_PATH,
    VERSION_PATH,
    PomDocument,
)
from .versions import Versions

logger = logging.getLogger(__name__)


@dataclass
class PomChange:
    """Record of a single element rewritten in a descriptor."""

    file_path: str
    element: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None


@dataclass
class PomUpdateResult:
    """Result of updating one or more descriptors."""

    files_modified: List[str] = field(default_factory=list)
    changes: List[PomChange] = field(default_factory=list)

    def merge(self, other: "PomUpdateResult") -> "PomUpdateResult":
        """Merge another result into this one."""
        return PomUpdateResult(
            files_modified=self.files_modified + other.files_modified,
            changes=self.changes + other.changes,
        )


@dataclass
class SnapshotLeftover:
    """A version element still pointing at a snapshot."""

    file_path: str
    element: str
    xml: str

    def __str__(self) -> str:
        return f"{self.file_path}: {self.xml}"


class PomUpdater:
    """
    Apply a Versions registry to individual descriptors.

    Example:
        pom = PomDocument.read("spring-cloud-sleuth/pom.xml")
        changes = PomUpdater().update_pom(pom, versions)
        pom.write()
    """

    def update_pom(self, pom: PomDocument, versions: Versions) -> List[PomChange]:
        """
        Record all version updates for a descriptor.

        Nothing is written; call ``pom.write()`` to persist. Values that are
        already up to date are left alone so repeated runs change nothing.

        Args:
            pom: Parsed descriptor
            versions: Registry to apply

        Returns:
            List of changes recorded on the document
        """
        changes = []
        changes.extend(self._update_version(pom, versions))
        changes.extend(self._update_parent_version(pom, versions))
        changes.extend(self._update_properties(pom, versions))
        return changes

    def _update_version(self, pom: PomDocument, versions: Versions) -> List[PomChange]:
        if pom.version is None or not versions.should_be_updated(pom.artifact_id):
            return []
        new_version = versions.version_for_project(pom.artifact_id)
        if not new_version or new_version == pom.version:
            return []
        old_version = pom.version
        pom.set_version(new_version)
        logger.debug(f"{pom.path}: version {old_version} -> {new_version}")
        return [PomChange(str(pom.path), "version", old_version, new_version)]

    def _update_parent_version(
        self, pom: PomDocument, versions: Versions
    ) -> List[PomChange]:
        parent = pom.parent
        if parent is None or parent.version is None:
            return []
        if not versions.should_be_updated(parent.artifact_id):
            return []
        new_version = versions.version_for_project(parent.artifact_id)
        if not new_version or new_version == parent.version:
            return []
        old_version = parent.version
        pom.set_parent_version(new_version)
        logger.debug(f"{pom.path}: parent {parent.artifact_id} {old_version} -> {new_version}")
        return [PomChange(str(pom.path), "parent.version", old_version, new_version)]

    def _update_properties(
        self, pom: PomDocument, versions: Versions
    ) -> List[PomChange]:
        if not versions.should_set_property(pom.properties):
            return []
        changes = []
        for key, new_version in sorted(versions.property_versions().items()):
            old_version = pom.properties.get(key)
            if old_version is None or not new_version or old_version == new_version:
                continue
            pom.set_property(key, new_version)
            logger.debug(f"{pom.path}: property {key} {old_version} -> {new_version}")
            changes.append(PomChange(str(pom.path), key, old_version, new_version))
        return changes

    def snapshot_leftovers(self, pom: PomDocument) -> List[SnapshotLeftover]:
        """
        Find version elements that still carry a snapshot version.

        Checks the project version, the parent version and every property
        whose name ends with ``.version``.
        """
        leftovers = []
        if pom.version and pom.version.endswith(config.SNAPSHOT_SUFFIX):
            leftovers.append(self._leftover(pom, VERSION_PATH, "version", pom.version))
        if pom.parent and pom.parent.version and pom.parent.version.endswith(
            config.SNAPSHOT_SUFFIX
        ):
            leftovers.append(
                self._leftover(pom, PARENT_VERSION_PATH, "parent.version", pom.parent.version)
            )
        for key, value in pom.properties.items():
            if key.endswith(config.VERSION_PROPERTY_SUFFIX) and value.endswith(
                config.SNAPSHOT_SUFFIX
            ):
                leftovers.append(self._leftover(pom, PROPERTIES_PATH + (key,), key, value))
        return leftovers

    def _leftover(self, pom: PomDocument, path, element: str, value: str) -> SnapshotLeftover:
        xml = pom.element_text(path) or f"<{path[-1]}>{value}</{path[-1]}>"
        return SnapshotLeftover(file_path=str(pom.path), element=element, xml=xml)
