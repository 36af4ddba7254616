"""
Announcement generator for release trains.

Renders the release email and blog post from Mustache templates. The
release train name and label come from the branch or tag the train was
read from, e.g. ``vDalston.SR1`` is the ``SR1`` release of ``Dalston``.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import pystache

from . import config
from .releaser_config import ReleaserConfig
from .versions import Projects, VersionSlot

MAVEN_CENTRAL = ("Maven Central", "https://repo1.maven.org/maven2/org/springframework/cloud/")
SPRING_MILESTONE = ("Spring Milestone", "http://repo.spring.io/milestone/")

# Distinguished entries that are not Spring Cloud projects of their own
_NOT_ANNOUNCED = set(VersionSlot.PLATFORM.aliases) | {config.DEPENDENCIES_PARENT_ARTIFACT_ID}


class TemplateGeneratorError(Exception):
    """Raised when a release label or template cannot be handled."""
    pass


@dataclass
class ReleaseTrainName:
    """Name and label of a release train, e.g. Dalston and SR1."""

    name: str
    label: str

    LABEL_PATTERN = re.compile(r"^(RELEASE|SR|M|RC)(\d*)$")

    @classmethod
    def from_branch(cls, branch: str) -> "ReleaseTrainName":
        """
        Parse a release train branch or tag.

        Examples:
            >>> ReleaseTrainName.from_branch("vDalston.SR1")
            ReleaseTrainName(name='Dalston', label='SR1')
            >>> ReleaseTrainName.from_branch("Dalston.RELEASE")
            ReleaseTrainName(name='Dalston', label='RELEASE')
        """
        if branch.startswith("v"):
            branch = branch[1:]
        name, separator, label = branch.rpartition(".")
        if not separator or not name or not label:
            raise TemplateGeneratorError(
                f"Branch [{branch}] is not of the form <Name>.<Label>, e.g. Dalston.SR1"
            )
        return cls(name=name, label=label)

    @property
    def version(self) -> str:
        return f"{self.name}.{self.label}"

    def _label_parts(self):
        match = self.LABEL_PATTERN.match(self.label)
        if not match:
            raise TemplateGeneratorError(f"Unsupported release label [{self.label}]")
        return match.group(1), match.group(2)

    @property
    def is_milestone(self) -> bool:
        kind, _ = self._label_parts()
        return kind in ("M", "RC")

    @property
    def description(self) -> str:
        """Human readable label, e.g. "Service Release 1 (SR1)"."""
        kind, number = self._label_parts()
        words = config.RELEASE_LABEL_NAMES[kind]
        if number:
            words = f"{words} {number}"
        return f"{words} ({self.label})"


def display_name(project_name: str) -> str:
    """spring-cloud-sleuth -> Spring Cloud Sleuth"""
    return " ".join(part.capitalize() for part in project_name.split("-") if part)


class TemplateGenerator:
    """
    Render release announcements.

    Example:
        generator = TemplateGenerator(releaser_config)
        email = generator.email()
        blog = generator.blog(versions.to_project_versions())
    """

    DEFAULT_TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "announcements"

    def __init__(self, releaser_config: ReleaserConfig, template_dir: Optional[str] = None):
        """
        Args:
            releaser_config: Configuration holding the release train branch
            template_dir: Custom template directory path.
                         Defaults to release_train/templates/announcements/
        """
        self.release = ReleaseTrainName.from_branch(releaser_config.pom.branch)
        self.template_dir = Path(template_dir) if template_dir else self.DEFAULT_TEMPLATE_DIR
        self.renderer = pystache.Renderer(
            missing_tags='ignore',
            escape=lambda x: x,     # Plain text and markdown, no HTML escaping
        )

    def email(self) -> str:
        return self._render("email", self.context())

    def blog(self, projects: Projects) -> str:
        """
        Render the blog post listing the released projects.

        Raises:
            TemplateGeneratorError: If any project is still a snapshot
        """
        if projects.contains_snapshots():
            snapshots = ", ".join(str(p) for p in projects if p.is_snapshot())
            raise TemplateGeneratorError(
                f"Cannot announce release train {self.release.version} with snapshot versions: {snapshots}"
            )
        return self._render("blog", self.context(projects))

    def context(self, projects: Optional[Projects] = None) -> Dict[str, Any]:
        """Template variables for the configured release train."""
        is_milestone = self.release.is_milestone
        repository_name, repository_url = SPRING_MILESTONE if is_milestone else MAVEN_CENTRAL
        announced = [
            {
                "name": project.name,
                "displayName": display_name(project.name),
                "version": project.version,
            }
            for project in (projects or Projects())
            if project.name not in _NOT_ANNOUNCED
        ]
        return {
            "releaseName": self.release.name,
            "releaseLabel": self.release.label,
            "releaseVersion": self.release.version,
            "releaseTypeDescription": self.release.description,
            "isMilestone": is_milestone,
            "repositoryName": repository_name,
            "repositoryUrl": repository_url,
            "projects": announced,
        }

    def _render(self, template_name: str, context: Dict[str, Any]) -> str:
        template_path = self.template_dir / f"{template_name}.mustache"
        if not template_path.exists():
            raise TemplateGeneratorError(
                f"Template not found: {template_name}.mustache "
                f"(looked in {self.template_dir})"
            )
        return self.renderer.render(template_path.read_text(), context)
