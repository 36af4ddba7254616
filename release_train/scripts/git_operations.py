"""
Git operations helper for release train scripts.

This module provides the local git operations needed to read a release
train repository, using subprocess calls to the git command line.
"""

import os
import subprocess
from typing import Optional


class GitOperationsError(Exception):
    """Base exception for git operations errors."""
    pass


class CloneError(GitOperationsError):
    """Raised when repository cloning fails."""
    pass


class BranchError(GitOperationsError):
    """Raised when branch or tag operations fail."""
    pass


class GitOperations:
    """
    Local git operations on a single working copy.

    The repository URL may be a remote URL or a path to a local
    repository; git handles both the same way.
    """

    def __init__(self, repo_url: str, work_dir: str):
        """
        Initialize git operations.

        Args:
            repo_url: Repository URL or local path
                      (e.g., "https://github.com/spring-cloud/spring-cloud-release")
            work_dir: Local directory path for the working copy
        """
        self.repo_url = repo_url
        self.work_dir = work_dir

    def _run_git(
        self,
        args: list,
        check: bool = True,
        cwd: Optional[str] = None
    ) -> str:
        """
        Run a git command and return output.

        Args:
            args: Command arguments (without 'git')
            check: Whether to raise on non-zero exit code
            cwd: Working directory (defaults to self.work_dir)

        Returns:
            Command output as string

        Raises:
            GitOperationsError: If command fails and check=True
        """
        cmd = ["git"] + args
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=check,
                cwd=cwd or self.work_dir,
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            raise GitOperationsError(f"git {' '.join(args)} failed: {e.stderr}")
        except OSError as e:
            raise GitOperationsError(f"git {' '.join(args)} failed: {e}")

    def clone(self) -> None:
        """
        Clone the repository into work_dir.

        Raises:
            CloneError: If cloning fails
        """
        parent_dir = os.path.dirname(os.path.abspath(self.work_dir))
        repo_name = os.path.basename(os.path.abspath(self.work_dir))
        try:
            self._run_git(["clone", self.repo_url, repo_name], cwd=parent_dir)
        except GitOperationsError as e:
            raise CloneError(f"Failed to clone {self.repo_url}: {e}")

    def checkout(self, ref: str) -> None:
        """
        Checkout a branch, tag or commit.

        Args:
            ref: Branch name, tag, or commit SHA

        Raises:
            BranchError: If checkout fails
        """
        try:
            self._run_git(["checkout", ref])
        except GitOperationsError as e:
            raise BranchError(str(e))

    def get_commit_sha(self, ref: str = "HEAD") -> str:
        """
        Get commit SHA for a reference.

        Args:
            ref: Git reference (branch, tag, or "HEAD")

        Returns:
            Full commit SHA string

        Raises:
            GitOperationsError: If reference doesn't exist
        """
        return self._run_git(["rev-parse", ref])
