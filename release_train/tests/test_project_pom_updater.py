"""
Unit tests for project_pom_updater module.

Descriptor trees are written to a temporary directory and updated in place.
The release train reader is mocked so no repository is cloned.
"""

import pytest
from unittest.mock import Mock

from release_train.scripts.pom_document import PomDocument, PomError
from release_train.scripts.project_pom_updater import (
    ProjectPomUpdater,
    UnresolvedVersionError,
)
from release_train.scripts.release_train_reader import (
    ReleaseTrainNotFoundError,
    ReleaseTrainReader,
)
from release_train.scripts.releaser_config import ReleaserConfig
from release_train.scripts.versions import ProjectVersion, Versions

ROOT_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
\t<modelVersion>4.0.0</modelVersion>
\t<groupId>org.springframework.cloud</groupId>
\t<artifactId>spring-cloud-sleuth-parent</artifactId>
\t<version>1.2.0.BUILD-SNAPSHOT</version>
\t<packaging>pom</packaging>

\t<parent>
\t\t<groupId>org.springframework.cloud</groupId>
\t\t<artifactId>spring-cloud-build</artifactId>
\t\t<version>1.3.1.BUILD-SNAPSHOT</version>
\t\t<relativePath/>
\t</parent>

\t<modules>
\t\t<module>spring-cloud-sleuth-core</module>
\t\t<module>spring-cloud-sleuth-dependencies</module>
\t</modules>

\t<properties>
\t\t<spring-cloud-commons.version>1.2.0.BUILD-SNAPSHOT</spring-cloud-commons.version>
\t\t<checkstyle.version>7.0</checkstyle.version>
\t</properties>
</project>
"""

CORE_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
\t<modelVersion>4.0.0</modelVersion>
\t<artifactId>spring-cloud-sleuth-core</artifactId>
\t<parent>
\t\t<groupId>org.springframework.cloud</groupId>
\t\t<artifactId>spring-cloud-sleuth-parent</artifactId>
\t\t<version>1.2.0.BUILD-SNAPSHOT</version>
\t\t<relativePath>..</relativePath>
\t</parent>
</project>
"""

DEPENDENCIES_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
\t<modelVersion>4.0.0</modelVersion>
\t<artifactId>spring-cloud-sleuth-dependencies</artifactId>
\t<version>1.2.0.BUILD-SNAPSHOT</version>
\t<parent>
\t\t<groupId>org.springframework.cloud</groupId>
\t\t<artifactId>spring-cloud-dependencies-parent</artifactId>
\t\t<version>1.3.1.BUILD-SNAPSHOT</version>
\t\t<relativePath/>
\t</parent>
</project>
"""

UNTRACKED_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project>
  <!-- sample app, not released -->
  <artifactId>spring-cloud-sleuth-sample</artifactId>
  <version>0.0.1-SNAPSHOT</version>
  <parent>
    <artifactId>some-other-parent</artifactId>
    <version>2.0</version>
  </parent>
  <properties>
    <other-plugin.version>1.0</other-plugin.version>
  </properties>
</project>
"""


def write_tree(root, files):
    for relative_path, content in files.items():
        path = root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


def snapshot_of(root):
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob("pom.xml"))
    }


def simple_pom(artifact_id, properties=None, parent=None):
    parts = ["<project>", f"  <artifactId>{artifact_id}</artifactId>"]
    if parent:
        parts.append(
            f"  <parent><artifactId>{parent[0]}</artifactId><version>{parent[1]}</version></parent>"
        )
    if properties:
        parts.append("  <properties>")
        parts += [f"    <{k}>{v}</{k}>" for k, v in properties.items()]
        parts.append("  </properties>")
    parts.append("</project>")
    return "\n".join(parts) + "\n"


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "spring-cloud-sleuth"
    write_tree(root, {
        "pom.xml": ROOT_POM,
        "spring-cloud-sleuth-core/pom.xml": CORE_POM,
        "spring-cloud-sleuth-dependencies/pom.xml": DEPENDENCIES_POM,
        "spring-cloud-sleuth-samples/sample/pom.xml": UNTRACKED_POM,
    })
    return root


@pytest.fixture
def release_versions():
    return Versions.for_platform_and_build(
        "1.5.2.RELEASE",
        "1.3.1.RELEASE",
        [
            ProjectVersion("spring-cloud-sleuth", "1.2.0.RELEASE"),
            ProjectVersion("spring-cloud-commons", "1.2.0.RELEASE"),
        ],
    )


@pytest.fixture
def snapshot_versions():
    return Versions.for_platform_and_build(
        "1.5.2.RELEASE",
        "1.3.2.BUILD-SNAPSHOT",
        [
            ProjectVersion("spring-cloud-sleuth", "1.2.1.BUILD-SNAPSHOT"),
            ProjectVersion("spring-cloud-commons", "1.2.1.BUILD-SNAPSHOT"),
        ],
    )


@pytest.fixture
def releaser_config(tmp_path):
    return ReleaserConfig(working_dir=str(tmp_path))


@pytest.fixture
def updater(releaser_config):
    return ProjectPomUpdater(releaser_config, reader=Mock(spec=ReleaseTrainReader))


class TestRetrieveVersions:
    """Tests for reading the release train with fixed version pins."""

    def test_returns_reader_versions(self, updater, release_versions):
        updater.reader.read.return_value = release_versions

        versions = updater.retrieve_versions_from_release_train()

        assert versions is release_versions
        source = updater.reader.read.call_args[0][0]
        assert source.repo_url == "https://github.com/spring-cloud/spring-cloud-release"
        assert source.branch == "master"

    def test_source_follows_configuration(self, updater, release_versions):
        updater.config.git.release_train_url = "/srv/git/spring-cloud-release"
        updater.config.pom.branch = "vDalston.SR1"
        updater.reader.read.return_value = release_versions

        updater.retrieve_versions_from_release_train()

        source = updater.reader.read.call_args[0][0]
        assert source.repo_url == "/srv/git/spring-cloud-release"
        assert source.branch == "vDalston.SR1"

    def test_applies_fixed_versions(self, updater, release_versions):
        updater.config.fixed_versions = {
            "checkstyle": "100.0.0.RELEASE",
            "spring-boot": "1.5.3.RELEASE",
        }
        updater.reader.read.return_value = release_versions

        versions = updater.retrieve_versions_from_release_train()

        assert versions.version_for_project("checkstyle") == "100.0.0.RELEASE"
        assert versions.platform_version == "1.5.3.RELEASE"
        assert versions.version_for_project("spring-boot-starter-parent") == "1.5.3.RELEASE"

    def test_missing_release_train(self, updater):
        updater.reader.read.side_effect = ReleaseTrainNotFoundError("No branch or tag [vNope]")

        with pytest.raises(ReleaseTrainNotFoundError):
            updater.retrieve_versions_from_release_train()


class TestUpdateProject:
    """Tests for propagating versions through a descriptor tree."""

    def test_release_update(self, updater, project, release_versions):
        result = updater.update_project_from_release_train(project, release_versions, validate=False)

        root = PomDocument.read(project / "pom.xml")
        assert root.version == "1.2.0.RELEASE"
        assert root.parent.version == "1.3.1.RELEASE"
        assert root.properties["spring-cloud-commons.version"] == "1.2.0.RELEASE"
        assert root.properties["checkstyle.version"] == "7.0"

        core = PomDocument.read(project / "spring-cloud-sleuth-core" / "pom.xml")
        assert core.parent.version == "1.2.0.RELEASE"

        dependencies = PomDocument.read(project / "spring-cloud-sleuth-dependencies" / "pom.xml")
        assert dependencies.parent.version == "1.3.1.RELEASE"
        # Not tracked by the train, so its own version is kept
        assert dependencies.version == "1.2.0.BUILD-SNAPSHOT"

        assert len(result.files_modified) == 3

    def test_only_version_text_changes(self, updater, project, release_versions):
        updater.update_project_from_release_train(project, release_versions, validate=False)

        expected = CORE_POM.replace(
            "<version>1.2.0.BUILD-SNAPSHOT</version>", "<version>1.2.0.RELEASE</version>"
        )
        assert (project / "spring-cloud-sleuth-core" / "pom.xml").read_text() == expected

    def test_untracked_descriptor_is_byte_identical(self, updater, project, release_versions):
        sample = project / "spring-cloud-sleuth-samples" / "sample" / "pom.xml"
        before = sample.read_bytes()
        mtime = sample.stat().st_mtime_ns

        updater.update_project_from_release_train(project, release_versions, validate=False)

        assert sample.read_bytes() == before
        assert sample.stat().st_mtime_ns == mtime

    def test_second_pass_is_a_no_op(self, updater, project, snapshot_versions):
        updater.update_project_from_release_train(project, snapshot_versions)
        after_first = snapshot_of(project)

        result = updater.update_project_from_release_train(project, snapshot_versions)

        assert snapshot_of(project) == after_first
        assert result.files_modified == []
        assert result.changes == []

    def test_snapshot_train_leaves_snapshots_in_place(self, updater, project, snapshot_versions):
        """Validation only applies to releases."""
        updater.update_project_from_release_train(project, snapshot_versions)

        root = PomDocument.read(project / "pom.xml")
        assert root.version == "1.2.1.BUILD-SNAPSHOT"
        dependencies = PomDocument.read(project / "spring-cloud-sleuth-dependencies" / "pom.xml")
        assert dependencies.version == "1.2.0.BUILD-SNAPSHOT"

    def test_skips_hidden_and_build_output_directories(self, updater, project, release_versions):
        write_tree(project, {
            "target/classes/pom.xml": ROOT_POM,
            ".git/pom.xml": ROOT_POM,
            "docs/node_modules/pkg/pom.xml": ROOT_POM,
        })

        updater.update_project_from_release_train(project, release_versions, validate=False)

        for skipped in ("target/classes", ".git", "docs/node_modules/pkg"):
            assert (project / skipped / "pom.xml").read_text() == ROOT_POM

    def test_find_poms_is_ordered(self, updater, project):
        found = [p.relative_to(project).as_posix() for p in updater.find_poms(project)]

        assert found == [
            "pom.xml",
            "spring-cloud-sleuth-core/pom.xml",
            "spring-cloud-sleuth-dependencies/pom.xml",
            "spring-cloud-sleuth-samples/sample/pom.xml",
        ]

    def test_malformed_descriptor_fails(self, updater, project, release_versions):
        (project / "spring-cloud-sleuth-core" / "pom.xml").write_text("<project>")

        with pytest.raises(PomError) as exc_info:
            updater.update_project_from_release_train(project, release_versions)

        assert "spring-cloud-sleuth-core" in str(exc_info.value)

    def test_latin1_descriptor(self, updater, tmp_path, release_versions):
        latin1_pom = (
            '<?xml version="1.0" encoding="ISO-8859-1"?>\n'
            "<project>\n"
            "  <artifactId>spring-cloud-sleuth</artifactId>\n"
            "  <name>Café module</name>\n"
            "  <version>1.2.0.BUILD-SNAPSHOT</version>\n"
            "</project>\n"
        )
        pom_file = tmp_path / "pom.xml"
        pom_file.write_bytes(latin1_pom.encode("iso-8859-1"))

        result = updater.update_project_from_release_train(tmp_path, release_versions)

        assert result.files_modified == [str(pom_file)]
        assert pom_file.read_bytes() == latin1_pom.replace(
            "1.2.0.BUILD-SNAPSHOT", "1.2.0.RELEASE"
        ).encode("iso-8859-1")


class TestValidation:
    """Tests for the snapshot check after a release update."""

    def test_unmatched_snapshot_property_fails(self, updater, tmp_path, release_versions):
        root = tmp_path / "project"
        write_tree(root, {
            "pom.xml": simple_pom(
                "spring-cloud-sleuth",
                properties={"spring-cloud-unmatched.version": "0.6.0.BUILD-SNAPSHOT"},
            ),
        })

        with pytest.raises(UnresolvedVersionError) as exc_info:
            updater.update_project_from_release_train(root, release_versions)

        message = str(exc_info.value)
        assert (
            "<spring-cloud-unmatched.version>0.6.0.BUILD-SNAPSHOT</spring-cloud-unmatched.version>"
            in message
        )
        assert str(root / "pom.xml") in message
        assert len(exc_info.value.leftovers) == 1

    def test_untracked_snapshot_module_fails_release(self, updater, project, release_versions):
        with pytest.raises(UnresolvedVersionError) as exc_info:
            updater.update_project_from_release_train(project, release_versions)

        elements = {leftover.element for leftover in exc_info.value.leftovers}
        assert elements == {"version"}
        files = {leftover.file_path for leftover in exc_info.value.leftovers}
        assert files == {str(project / "spring-cloud-sleuth-dependencies" / "pom.xml")}

    def test_pinned_module_passes_release(self, updater, project, release_versions):
        release_versions.set_version("spring-cloud-sleuth-dependencies", "1.2.0.RELEASE")

        updater.update_project_from_release_train(project, release_versions)

        dependencies = PomDocument.read(project / "spring-cloud-sleuth-dependencies" / "pom.xml")
        assert dependencies.version == "1.2.0.RELEASE"

    def test_validation_can_be_skipped(self, updater, tmp_path, release_versions):
        root = tmp_path / "project"
        write_tree(root, {
            "pom.xml": simple_pom("a", properties={"b.version": "1.0.BUILD-SNAPSHOT"}),
        })

        updater.update_project_from_release_train(root, release_versions, validate=False)


class TestScenarios:
    """End to end propagation scenarios."""

    def test_build_parent_and_property_follow_train(self, updater, tmp_path):
        versions = Versions.for_platform_and_build(
            "2.1.0.RELEASE", "", [ProjectVersion("spring-cloud-build", "3.0.0.RELEASE")]
        )
        root = tmp_path / "project"
        write_tree(root, {
            "pom.xml": simple_pom(
                "spring-cloud-foo",
                parent=("spring-cloud-build", "3.0.0.BUILD-SNAPSHOT"),
                properties={"spring-cloud-build.version": "3.0.0.BUILD-SNAPSHOT"},
            ),
        })

        updater.update_project_from_release_train(root, versions)

        pom = PomDocument.read(root / "pom.xml")
        assert pom.parent.version == "3.0.0.RELEASE"
        assert pom.properties["spring-cloud-build.version"] == "3.0.0.RELEASE"

    def test_fixed_version_property(self, updater, tmp_path, release_versions):
        release_versions.set_version("checkstyle", "100.0.0.RELEASE")
        root = tmp_path / "project"
        write_tree(root, {
            "pom.xml": simple_pom(
                "spring-cloud-foo",
                properties={"checkstyle.version": "7.0", "other-plugin.version": "1.0"},
            ),
        })

        updater.update_project_from_release_train(root, release_versions)

        pom = PomDocument.read(root / "pom.xml")
        assert pom.properties == {
            "checkstyle.version": "100.0.0.RELEASE",
            "other-plugin.version": "1.0",
        }

    def test_only_middle_level_property_rewritten(self, updater, tmp_path, release_versions):
        root = tmp_path / "project"
        leaf = simple_pom("leaf", properties={"other-plugin.version": "1.0"})
        top = simple_pom("top", properties={"java.version": "1.8"})
        write_tree(root, {
            "pom.xml": top,
            "middle/pom.xml": simple_pom(
                "middle", properties={"spring-cloud-commons.version": "1.1.0.RELEASE"}
            ),
            "middle/leaf/pom.xml": leaf,
        })

        result = updater.update_project_from_release_train(root, release_versions)

        assert result.files_modified == [str(root / "middle" / "pom.xml")]
        middle = PomDocument.read(root / "middle" / "pom.xml")
        assert middle.properties["spring-cloud-commons.version"] == "1.2.0.RELEASE"
        assert (root / "pom.xml").read_text() == top
        assert (root / "middle" / "leaf" / "pom.xml").read_text() == leaf
