"""
Version registry for release train propagation.

This module holds the set of project versions taken from a release train,
together with the two distinguished versions every train carries: the
platform (Spring Boot) version and the shared build (Spring Cloud Build)
version. Each distinguished version is mirrored under two artifact names
because descriptors refer to it by either.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Set

from . import config


class MissingVersionError(Exception):
    """Raised when a flat version set lacks a distinguished project."""
    pass


@dataclass(frozen=True)
class ProjectVersion:
    """A single project name pinned to a version."""

    name: str
    version: str

    def is_snapshot(self) -> bool:
        return self.version.endswith(config.SNAPSHOT_SUFFIX)

    def __str__(self) -> str:
        return f"name=[{self.name}], version=[{self.version}]"


EMPTY_PROJECT = ProjectVersion("", "")


@dataclass(frozen=True)
class Projects:
    """
    Flat, read-only view of project versions.

    This is the shape handed to the announcement templates and to anything
    that only needs name/version pairs without the registry semantics.
    """

    versions: FrozenSet[ProjectVersion] = field(default_factory=frozenset)

    def __iter__(self):
        return iter(sorted(self.versions, key=lambda p: (p.name, p.version)))

    def __len__(self) -> int:
        return len(self.versions)

    def __contains__(self, item) -> bool:
        return item in self.versions

    def contains_snapshots(self) -> bool:
        return any(project.is_snapshot() for project in self.versions)

    def to_dict(self) -> Dict[str, str]:
        return {project.name: project.version for project in self}


class VersionSlot(Enum):
    """Which carried version a project name belongs to."""

    PLATFORM = (config.PLATFORM_PROJECT_NAME, config.PLATFORM_STARTER_ARTIFACT_ID)
    BUILD = (config.BUILD_ARTIFACT_ID, config.DEPENDENCIES_PARENT_ARTIFACT_ID)
    OTHER = ()

    @property
    def aliases(self):
        return self.value

    @classmethod
    def for_name(cls, name: str) -> "VersionSlot":
        for slot in (cls.PLATFORM, cls.BUILD):
            if name in slot.aliases:
                return slot
        return cls.OTHER


def name_matches(query: str, entry_name: str) -> bool:
    """
    Check whether a queried artifact name refers to a tracked project.

    A module's parent descriptor is conventionally named after the project
    with a ``-parent`` suffix, so ``spring-cloud-sleuth-parent`` matches the
    ``spring-cloud-sleuth`` entry.

    Examples:
        >>> name_matches("spring-cloud-sleuth", "spring-cloud-sleuth")
        True
        >>> name_matches("spring-cloud-sleuth-parent", "spring-cloud-sleuth")
        True
        >>> name_matches("spring-cloud-sleuth-core", "spring-cloud-sleuth")
        False
    """
    if query == entry_name:
        return True
    if not query.endswith(config.PARENT_SUFFIX):
        return False
    return query[: -len(config.PARENT_SUFFIX)] == entry_name


class Versions:
    """
    Registry of project versions for a single release operation.

    Use the named constructors to build one; they differ only in how the
    registry is initially populated:

        Versions.for_platform("1.5.2.RELEASE")
        Versions.for_build("1.3.1.RELEASE", projects)
        Versions.for_platform_and_build("1.5.2.RELEASE", "1.3.1.RELEASE", projects)
        Versions.from_project_versions(exported_versions)
    """

    def __init__(self):
        self.platform_version = ""
        self.build_version = ""
        self.projects: Set[ProjectVersion] = set()

    @classmethod
    def for_platform(cls, platform_version: str) -> "Versions":
        versions = cls()
        versions._set_slot(VersionSlot.PLATFORM, platform_version)
        return versions

    @classmethod
    def for_build(
        cls, build_version: str, projects: Iterable[ProjectVersion]
    ) -> "Versions":
        versions = cls()
        versions._add_all(projects)
        versions._seed(VersionSlot.BUILD, build_version)
        return versions

    @classmethod
    def for_platform_and_build(
        cls,
        platform_version: str,
        build_version: str,
        projects: Iterable[ProjectVersion],
    ) -> "Versions":
        versions = cls()
        versions._add_all(projects)
        versions._seed(VersionSlot.PLATFORM, platform_version)
        versions._seed(VersionSlot.BUILD, build_version)
        return versions

    @classmethod
    def from_project_versions(
        cls, project_versions: Iterable[ProjectVersion]
    ) -> "Versions":
        """
        Rebuild a registry from a flat export.

        Raises:
            MissingVersionError: If the platform or build project is absent
        """
        project_versions = set(project_versions)
        platform = _find_by_name(project_versions, config.PLATFORM_PROJECT_NAME)
        if platform is None:
            raise MissingVersionError(
                f"Platform version is missing: no [{config.PLATFORM_PROJECT_NAME}] "
                "entry in the release train versions"
            )
        build = _find_by_name(project_versions, config.BUILD_ARTIFACT_ID)
        if build is None:
            raise MissingVersionError(
                f"Build version is missing: no [{config.BUILD_ARTIFACT_ID}] "
                "entry in the release train versions"
            )
        versions = cls()
        versions._add_all(project_versions)
        versions._set_slot(VersionSlot.PLATFORM, platform.version)
        versions._set_slot(VersionSlot.BUILD, build.version)
        return versions

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "Versions":
        return cls.from_project_versions(
            ProjectVersion(name, version) for name, version in mapping.items()
        )

    def version_for_project(self, project_name: str) -> str:
        """Version of the best matching entry, or "" if not tracked."""
        return self._find(project_name).version

    def should_be_updated(self, project_name: str) -> bool:
        return self._find(project_name) is not EMPTY_PROJECT

    def should_set_property(self, properties: Mapping[str, str]) -> bool:
        return any(
            _property_name(project) in properties for project in self.projects
        )

    def property_versions(self) -> Dict[str, str]:
        """Map of ``<name>.version`` property keys to tracked versions."""
        return {_property_name(project): project.version for project in self.projects}

    def is_snapshot(self) -> bool:
        return any(project.is_snapshot() for project in self.projects)

    def set_version(self, project_name: str, version: str) -> "Versions":
        """
        Overwrite the version of a project.

        Setting either name of a distinguished project updates its carried
        version and both of its entries. Returns self for chaining.
        """
        slot = VersionSlot.for_name(project_name)
        if slot is VersionSlot.OTHER:
            self._remove(project_name)
            self.projects.add(ProjectVersion(project_name, version))
        else:
            self._set_slot(slot, version)
        return self

    def to_project_versions(self) -> Projects:
        return Projects(frozenset(self.projects))

    def _add_all(self, projects: Iterable[ProjectVersion]) -> None:
        # Explicitly passed distinguished versions are seeded afterwards and win
        for project in projects:
            self.set_version(project.name, project.version)

    def _seed(self, slot: VersionSlot, version: str) -> None:
        # An unset scalar keeps a version already carried by the entries
        if version or not self._has_slot(slot):
            self._set_slot(slot, version)

    def _has_slot(self, slot: VersionSlot) -> bool:
        return any(_find_by_name(self.projects, alias) is not None for alias in slot.aliases)

    def _set_slot(self, slot: VersionSlot, version: str) -> None:
        if slot is VersionSlot.PLATFORM:
            self.platform_version = version
        elif slot is VersionSlot.BUILD:
            self.build_version = version
        for alias in slot.aliases:
            self._remove(alias)
            self.projects.add(ProjectVersion(alias, version))

    def _find(self, project_name: str) -> ProjectVersion:
        # Exact names win over the -parent convention
        exact = _find_by_name(self.projects, project_name)
        if exact is not None:
            return exact
        for project in self.projects:
            if name_matches(project_name, project.name):
                return project
        return EMPTY_PROJECT

    def _remove(self, project_name: str) -> None:
        self.projects = {p for p in self.projects if p.name != project_name}

    def __str__(self) -> str:
        projects = "\n\t".join(str(p) for p in sorted(self.projects, key=lambda p: p.name))
        return (
            f"Spring Boot Version=[{self.platform_version}]\n"
            f"Spring Cloud Build Version=[{self.build_version}]\n"
            f"Projects=\n\t{projects}"
        )


def _find_by_name(
    projects: Iterable[ProjectVersion], name: str
) -> Optional[ProjectVersion]:
    for project in projects:
        if project.name == name:
            return project
    return None


def _property_name(project: ProjectVersion) -> str:
    return f"{project.name}{config.VERSION_PROPERTY_SUFFIX}"
