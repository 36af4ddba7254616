#!/usr/bin/env python3
"""
Command line entry point for release train operations.

Usage:
    release-train update path/to/project --branch vDalston.SR1
    release-train versions --output versions.yaml
    release-train update path/to/project --versions-file versions.yaml
    release-train email --branch vDalston.RELEASE
    release-train blog --branch vDalston.RELEASE --output blog.md
    release-train build
    release-train publish-docs 1.1.0.RELEASE
    release-train bump-versions 1.1.1.BUILD-SNAPSHOT
"""

import argparse
import logging
import sys
from typing import List, Optional

import yaml

from .pom_document import PomError
from .project_builder import BuildError, ProjectBuilder
from .project_pom_updater import ProjectPomUpdater, UnresolvedVersionError
from .release_train_reader import ReleaseTrainNotFoundError
from .releaser_config import ReleaserConfig, ReleaserConfigError, load_releaser_config
from .template_generator import TemplateGenerator, TemplateGeneratorError
from .versions import MissingVersionError, Versions

logger = logging.getLogger(__name__)

RELEASE_ERRORS = (
    BuildError,
    MissingVersionError,
    PomError,
    ReleaseTrainNotFoundError,
    ReleaserConfigError,
    TemplateGeneratorError,
    UnresolvedVersionError,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-train",
        description="Propagate release train versions and release Spring Cloud projects",
    )
    parser.add_argument("--config", help="Path to releaser.yaml", default=None)
    parser.add_argument("--release-train-url", help="Release train git repository", default=None)
    parser.add_argument("--branch", help="Release train branch or tag, e.g. vDalston.SR1", default=None)
    parser.add_argument(
        "--fixed-version",
        action="append",
        default=[],
        metavar="NAME=VERSION",
        help="Pin a project to a version (repeatable)",
    )
    parser.add_argument("--working-dir", help="Project being released", default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    update = subparsers.add_parser("update", help="Apply release train versions to a project")
    update.add_argument("project_dir", nargs="?", default=None)
    update.add_argument(
        "--versions-file",
        default=None,
        help="Read versions from an exported YAML mapping instead of the release train",
    )

    versions = subparsers.add_parser("versions", help="Print the release train versions")
    versions.add_argument("--output", default=None, help="Export versions as a YAML mapping")

    for name in ("email", "blog"):
        announcement = subparsers.add_parser(name, help=f"Render the release {name}")
        announcement.add_argument("--output", default=None, help="Write to a file instead of stdout")

    subparsers.add_parser("build", help="Build the project and check its documentation")
    subparsers.add_parser("deploy", help="Deploy the project")

    publish_docs = subparsers.add_parser("publish-docs", help="Publish the project documentation")
    publish_docs.add_argument("version")

    bump = subparsers.add_parser("bump-versions", help="Set the project's own version")
    bump.add_argument("version")

    return parser


def apply_overrides(releaser_config: ReleaserConfig, args: argparse.Namespace) -> ReleaserConfig:
    """Apply command line flags over file configuration."""
    if args.release_train_url:
        releaser_config.git.release_train_url = args.release_train_url
    if args.branch:
        releaser_config.pom.branch = args.branch
    if args.working_dir:
        releaser_config.working_dir = args.working_dir
    for pin in args.fixed_version:
        name, separator, version = pin.partition("=")
        if not separator or not name or not version:
            raise ReleaserConfigError(f"--fixed-version expects NAME=VERSION, got [{pin}]")
        releaser_config.fixed_versions[name.strip()] = version.strip()
    return releaser_config


def load_versions_file(path: str) -> Versions:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ReleaserConfigError(f"Failed to read versions file {path}: {e}")
    if not isinstance(data, dict):
        raise ReleaserConfigError(f"Versions file {path} must hold a mapping of project to version")
    return Versions.from_mapping({str(k): str(v) for k, v in data.items()})


def _emit(text: str, output: Optional[str]) -> None:
    if output:
        with open(output, "w") as f:
            f.write(text)
        logger.info(f"Written to {output}")
    else:
        sys.stdout.write(text)


def run(args: argparse.Namespace, releaser_config: ReleaserConfig) -> None:
    command = args.command

    if command == "update":
        updater = ProjectPomUpdater(releaser_config)
        if args.versions_file:
            versions = load_versions_file(args.versions_file)
        else:
            versions = updater.retrieve_versions_from_release_train()
        project_dir = args.project_dir or releaser_config.working_dir
        result = updater.update_project_from_release_train(project_dir, versions)
        for change in result.changes:
            logger.info(
                f"{change.file_path}: {change.element} {change.old_value} -> {change.new_value}"
            )
    elif command == "versions":
        versions = ProjectPomUpdater(releaser_config).retrieve_versions_from_release_train()
        if args.output:
            mapping = versions.to_project_versions().to_dict()
            _emit(yaml.safe_dump(mapping, default_flow_style=False, sort_keys=True), args.output)
        else:
            _emit(f"{versions}\n", None)
    elif command == "email":
        _emit(TemplateGenerator(releaser_config).email(), args.output)
    elif command == "blog":
        versions = ProjectPomUpdater(releaser_config).retrieve_versions_from_release_train()
        _emit(TemplateGenerator(releaser_config).blog(versions.to_project_versions()), args.output)
    elif command == "build":
        ProjectBuilder(releaser_config).build()
    elif command == "deploy":
        ProjectBuilder(releaser_config).deploy()
    elif command == "publish-docs":
        ProjectBuilder(releaser_config).publish_docs(args.version)
    elif command == "bump-versions":
        ProjectBuilder(releaser_config).bump_versions(args.version)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        releaser_config = apply_overrides(load_releaser_config(args.config), args)
        run(args, releaser_config)
    except RELEASE_ERRORS as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
