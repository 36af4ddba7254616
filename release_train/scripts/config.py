"""
Central configuration for release train scripts.
"""

# Distinguished projects
PLATFORM_PROJECT_NAME = "spring-boot"
PLATFORM_STARTER_ARTIFACT_ID = "spring-boot-starter-parent"
BUILD_ARTIFACT_ID = "spring-cloud-build"
DEPENDENCIES_PARENT_ARTIFACT_ID = "spring-cloud-dependencies-parent"

# Version markers
SNAPSHOT_SUFFIX = "BUILD-SNAPSHOT"
PARENT_SUFFIX = "-parent"
VERSION_PROPERTY_SUFFIX = ".version"

# File names
POM_FILE = "pom.xml"
RELEASER_CONFIG_FILE = "releaser.yaml"

# Directories never searched for descriptors
SKIPPED_DIRECTORIES = {"target", "node_modules"}

# Release train repository layout
DEFAULT_RELEASE_TRAIN_URL = "https://github.com/spring-cloud/spring-cloud-release"
DEFAULT_RELEASE_TRAIN_BRANCH = "master"
STARTER_PARENT_POM = "spring-cloud-starter-parent/pom.xml"
DEPENDENCIES_POM = "spring-cloud-dependencies/pom.xml"

# Maven commands
DEFAULT_BUILD_COMMAND = "./mvnw clean install -Pdocs"
DEFAULT_DEPLOY_COMMAND = "./mvnw deploy -DskipTests -Pfast"
DEFAULT_PUBLISH_DOCS_COMMANDS = [
    "mkdir -p target",
    "wget https://raw.githubusercontent.com/spring-cloud/spring-cloud-build/master/docs/src/main/asciidoc/ghpages.sh -O target/gh-pages.sh",
    "chmod +x target/gh-pages.sh",
    ". ./target/gh-pages.sh -v {{version}} -c",
]
DEFAULT_WAIT_TIME_MINUTES = 20
VERSION_PLACEHOLDER = "{{version}}"
UNRESOLVED_TAG_MARKER = "Unresolved directive"

# Release label display names
RELEASE_LABEL_NAMES = {
    "RELEASE": "General Availability",
    "SR": "Service Release",
    "M": "Milestone",
    "RC": "Release Candidate",
}
