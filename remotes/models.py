import enum
from dataclasses import dataclass
from typing import NotRequired
from typing import TypedDict


# --------------------------
# Normalized request
# --------------------------
class RequestState(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


@dataclass(frozen=True, slots=True)
class MergeRequest:
    """
    A GitLab merge request or GitHub pull request, reduced to what git-req needs
    """

    id: int
    source_branch: str
    title: str = ""
    state: RequestState = RequestState.OPEN
    web_url: str | None = None


# --------------------------
# Git remotes
# --------------------------
@dataclass(frozen=True, slots=True)
class RemoteUrl:
    """
    The parts of a git remote URL the hosting APIs are addressed by.
    path is the full project path, e.g. "group/subgroup/project"
    """

    url: str
    domain: str
    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


# --------------------------
# GitLab
# See: https://docs.gitlab.com/ee/api/merge_requests.html
# --------------------------
class GitlabMergeRequest(TypedDict):
    id: int
    iid: int
    title: str
    description: NotRequired[str | None]
    state: str
    target_branch: NotRequired[str]
    source_branch: str
    sha: NotRequired[str]
    web_url: NotRequired[str]


class GitlabProject(TypedDict):
    id: int
    description: NotRequired[str | None]
    name: str
    path: str
    path_with_namespace: str


class GitlabNamespace(TypedDict):
    id: int
    name: str
    path: str
    kind: str
    full_path: str


# --------------------------
# GitHub
# See: https://docs.github.com/en/rest/pulls/pulls
# --------------------------
class GithubBranchRef(TypedDict):
    label: NotRequired[str]
    ref: str
    sha: NotRequired[str]


class GithubPullRequest(TypedDict):
    id: int
    number: int
    title: str
    body: NotRequired[str | None]
    state: str
    html_url: NotRequired[str]
    merged_at: NotRequired[str | None]
    head: GithubBranchRef
    base: NotRequired[GithubBranchRef]
