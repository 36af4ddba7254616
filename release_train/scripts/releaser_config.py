"""
Runtime configuration for release train operations.

Configuration is read from a YAML file (``releaser.yaml`` by default) with
the following layout; every key is optional:

    working_dir: /path/to/project
    fixed_versions:
      checkstyle: 100.0.0.RELEASE
    git:
      release_train_url: https://github.com/spring-cloud/spring-cloud-release
    pom:
      branch: vDalston.SR1
      starter_parent_pom: spring-cloud-starter-parent/pom.xml
      dependencies_pom: spring-cloud-dependencies/pom.xml
    maven:
      build_command: ./mvnw clean install -Pdocs
      deploy_command: ./mvnw deploy -DskipTests -Pfast
      publish_docs_commands: [...]
      wait_time_minutes: 20
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from . import config


class ReleaserConfigError(Exception):
    """Raised when the configuration file is missing or malformed."""
    pass


@dataclass
class GitConfig:
    """Where the release train lives."""
    release_train_url: str = config.DEFAULT_RELEASE_TRAIN_URL


@dataclass
class PomConfig:
    """Which release train revision to read, and its layout."""
    branch: str = config.DEFAULT_RELEASE_TRAIN_BRANCH
    starter_parent_pom: str = config.STARTER_PARENT_POM
    dependencies_pom: str = config.DEPENDENCIES_POM


@dataclass
class MavenConfig:
    """Commands run against the project being released."""
    build_command: str = config.DEFAULT_BUILD_COMMAND
    deploy_command: str = config.DEFAULT_DEPLOY_COMMAND
    publish_docs_commands: List[str] = field(
        default_factory=lambda: list(config.DEFAULT_PUBLISH_DOCS_COMMANDS)
    )
    wait_time_minutes: int = config.DEFAULT_WAIT_TIME_MINUTES


@dataclass
class ReleaserConfig:
    """Complete releaser configuration."""
    working_dir: str = field(default_factory=os.getcwd)
    fixed_versions: Dict[str, str] = field(default_factory=dict)
    git: GitConfig = field(default_factory=GitConfig)
    pom: PomConfig = field(default_factory=PomConfig)
    maven: MavenConfig = field(default_factory=MavenConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReleaserConfig":
        """
        Build a configuration from parsed YAML.

        Unknown keys are ignored so configuration files can carry settings
        for other tools.
        """
        if not isinstance(data, dict):
            raise ReleaserConfigError(
                f"Configuration must be a mapping, got {type(data).__name__}"
            )

        releaser = cls(
            git=_section(GitConfig, data.get("git")),
            pom=_section(PomConfig, data.get("pom")),
            maven=_section(MavenConfig, data.get("maven")),
        )
        if data.get("working_dir"):
            releaser.working_dir = str(data["working_dir"])

        fixed_versions = data.get("fixed_versions") or {}
        if not isinstance(fixed_versions, dict):
            raise ReleaserConfigError("fixed_versions must be a mapping of project name to version")
        releaser.fixed_versions = {
            str(name): str(version) for name, version in fixed_versions.items()
        }

        if isinstance(releaser.maven.publish_docs_commands, str):
            releaser.maven.publish_docs_commands = [releaser.maven.publish_docs_commands]
        try:
            releaser.maven.wait_time_minutes = int(releaser.maven.wait_time_minutes)
        except (TypeError, ValueError):
            raise ReleaserConfigError(
                f"maven.wait_time_minutes must be a number, got {releaser.maven.wait_time_minutes!r}"
            )
        return releaser


def load_releaser_config(path: Optional[str] = None) -> ReleaserConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the configuration file. If None, ``releaser.yaml`` in
              the current directory is used when present, defaults otherwise.

    Returns:
        ReleaserConfig with file values applied over defaults

    Raises:
        ReleaserConfigError: If an explicit path is missing or any file is malformed
    """
    if path is None:
        if not os.path.exists(config.RELEASER_CONFIG_FILE):
            return ReleaserConfig()
        path = config.RELEASER_CONFIG_FILE
    elif not os.path.exists(path):
        raise ReleaserConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ReleaserConfigError(f"Failed to parse {path}: {e}")

    return ReleaserConfig.from_dict(data or {})


def _section(section_cls, data: Optional[Dict[str, Any]]):
    if not data:
        return section_cls()
    if not isinstance(data, dict):
        raise ReleaserConfigError(
            f"Section for {section_cls.__name__} must be a mapping"
        )
    known_fields = {f.name for f in fields(section_cls)}
    return section_cls(**{k: v for k, v in data.items() if k in known_fields})
