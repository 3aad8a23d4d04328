import subprocess
from pathlib import Path

import pytest

from remotes.github import GithubPullRequestApi
from remotes.gitlab import GitlabMergeRequestApi
from reqtools.config import GlobalConfig
from reqtools.config import RepoConfig

# --- Constants for Mock Fixtures ---
MOCK_TOKEN = "test_conftest_token"
GITLAB_DOMAIN = "gitlab.example.com"
GITLAB_URL = f"git@{GITLAB_DOMAIN}:group/project.git"
GITHUB_URL = "https://github.com/owner/repo.git"


def run_git(cwd: Path, *args: str) -> str:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        text=True,
        capture_output=True,
    ).stdout


def commit_file(repo: Path, name: str, content: str) -> None:
    (repo / name).write_text(content)
    run_git(repo, "add", name)
    run_git(repo, "commit", "-q", "-m", f"Add {name}")


@pytest.fixture
def github_api():
    """Provides a GithubPullRequestApi instance."""
    with GithubPullRequestApi(token=MOCK_TOKEN) as api:
        yield api


@pytest.fixture
def gitlab_api():
    """Provides a GitlabMergeRequestApi instance for a self-hosted GitLab."""
    with GitlabMergeRequestApi(token=MOCK_TOKEN, domain=GITLAB_DOMAIN) as api:
        yield api


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keeps git and git-req away from the real user's configuration."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONFIG_GLOBAL", raising=False)
    monkeypatch.delenv("GIT_DIR", raising=False)
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Author")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_REQ_CONFIG", str(home / ".gitreqconfig"))
    return home


@pytest.fixture
def upstream_repo(tmp_path: Path, git_env: Path) -> Path:
    """
    A repository standing in for the hosting service: main, a feature branch
    and a GitHub style pull request ref pointing at it
    """
    path = tmp_path / "upstream"
    run_git(tmp_path, "init", "-q", "-b", "main", str(path))
    commit_file(path, "README", "hello\n")
    run_git(path, "checkout", "-q", "-b", "hotfix/x")
    commit_file(path, "fix.txt", "fixed\n")
    run_git(path, "update-ref", "refs/pull/17/head", "hotfix/x")
    run_git(path, "checkout", "-q", "main")
    return path


@pytest.fixture
def git_repo(tmp_path: Path, upstream_repo: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A clone of the upstream repository, used as the working directory."""
    path = tmp_path / "work"
    run_git(tmp_path, "clone", "-q", str(upstream_repo), str(path))
    monkeypatch.chdir(path)
    return path


@pytest.fixture
def repo_config(git_repo: Path) -> RepoConfig:
    return RepoConfig(git_repo)


@pytest.fixture
def global_config(git_env: Path) -> GlobalConfig:
    return GlobalConfig(git_env / ".gitreqconfig")
