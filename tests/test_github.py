import httpx
import pytest
from pytest_httpx import HTTPXMock

from remotes.github import GithubPullRequestApi
from remotes.github import PullRequest
from remotes.models import MergeRequest
from remotes.models import RemoteUrl
from remotes.models import RequestState
from reqtools.errors import AuthError
from reqtools.errors import NetworkError
from reqtools.errors import NotFoundError
from reqtools.errors import RateLimitError

PR_URL = "https://api.github.com/repos/owner/repo/pulls/17"
LIST_URL = "https://api.github.com/repos/owner/repo/pulls?state=open&per_page=100"


def pull_json(number: int, ref: str, state: str = "open", merged_at: str | None = None) -> dict:
    return {
        "id": 1000 + number,
        "number": number,
        "title": f"Pull request {number}",
        "body": "Some description",
        "state": state,
        "html_url": f"https://github.com/owner/repo/pull/{number}",
        "merged_at": merged_at,
        "head": {"ref": ref, "sha": "abc123"},
    }


class TestPullRequest:
    def test_normalizes_to_merge_request(self):
        request = PullRequest(pull_json(17, "hotfix/x")).to_request()

        assert request.id == 17
        assert request.source_branch == "hotfix/x"
        assert request.title == "Pull request 17"
        assert request.state == RequestState.OPEN
        assert request.web_url == "https://github.com/owner/repo/pull/17"

    def test_closed_state(self):
        request = PullRequest(pull_json(3, "old", state="closed")).to_request()
        assert request.state == RequestState.CLOSED

    def test_merged_state(self):
        pr = PullRequest(pull_json(3, "old", state="closed", merged_at="2024-01-01T00:00:00Z"))
        assert pr.merged
        assert pr.to_request().state == RequestState.MERGED


class TestGithubPullRequestApi:
    def test_get_request(self, httpx_mock: HTTPXMock, github_api: GithubPullRequestApi):
        httpx_mock.add_response(url=PR_URL, json=pull_json(17, "hotfix/x"))

        request = github_api.get_request("owner/repo", 17)

        assert isinstance(request, MergeRequest)
        assert request.id == 17
        assert request.source_branch == "hotfix/x"

    def test_sends_token_header(self, httpx_mock: HTTPXMock, github_api: GithubPullRequestApi):
        httpx_mock.add_response(url=PR_URL, json=pull_json(17, "hotfix/x"))

        github_api.get_request("owner/repo", 17)

        sent = httpx_mock.get_request()
        assert sent.headers["Authorization"] == "token test_conftest_token"
        assert "PRIVATE-TOKEN" not in sent.headers

    def test_open_requests_follows_pages(self, httpx_mock: HTTPXMock, github_api: GithubPullRequestApi):
        page_two = "https://api.github.com/repositories/1/pulls?state=open&per_page=100&page=2"
        httpx_mock.add_response(
            url=LIST_URL,
            json=[pull_json(1, "one"), pull_json(2, "two")],
            headers={"Link": f'<{page_two}>; rel="next", <{page_two}>; rel="last"'},
        )
        httpx_mock.add_response(url=page_two, json=[pull_json(3, "three")])

        requests = github_api.open_requests("owner/repo")

        assert [r.id for r in requests] == [1, 2, 3]
        assert [r.source_branch for r in requests] == ["one", "two", "three"]

    def test_unauthorized(self, httpx_mock: HTTPXMock, github_api: GithubPullRequestApi):
        httpx_mock.add_response(url=PR_URL, status_code=401, json={"message": "Bad credentials"})

        with pytest.raises(AuthError) as exc_info:
            github_api.get_request("owner/repo", 17)

        assert exc_info.value.status_code == 401
        assert "--set-domain-key" in str(exc_info.value)

    def test_forbidden_is_auth_error(self, httpx_mock: HTTPXMock, github_api: GithubPullRequestApi):
        httpx_mock.add_response(url=PR_URL, status_code=403, headers={"X-RateLimit-Remaining": "4000"})

        with pytest.raises(AuthError):
            github_api.get_request("owner/repo", 17)

    def test_rate_limited(self, httpx_mock: HTTPXMock, github_api: GithubPullRequestApi):
        httpx_mock.add_response(url=PR_URL, status_code=403, headers={"X-RateLimit-Remaining": "0"})

        with pytest.raises(RateLimitError):
            github_api.get_request("owner/repo", 17)

    def test_not_found(self, httpx_mock: HTTPXMock, github_api: GithubPullRequestApi):
        httpx_mock.add_response(url=PR_URL, status_code=404)

        with pytest.raises(NotFoundError):
            github_api.get_request("owner/repo", 17)

    def test_network_error(self, httpx_mock: HTTPXMock, github_api: GithubPullRequestApi):
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=PR_URL)

        with pytest.raises(NetworkError):
            github_api.get_request("owner/repo", 17)

    def test_project_id_is_the_path(self, github_api: GithubPullRequestApi):
        url = RemoteUrl(url="git@github.com:owner/repo.git", domain="github.com", path="owner/repo")
        assert github_api.find_project_id(url) == "owner/repo"

    def test_branches_use_pull_refs(self, github_api: GithubPullRequestApi):
        request = MergeRequest(id=17, source_branch="hotfix/x")

        assert github_api.VIRTUAL_REMOTE_BRANCHES
        assert github_api.remote_branch(request) == "pull/17/head"
        assert github_api.local_branch(request) == "pr/17"

    def test_enterprise_api_root(self):
        with GithubPullRequestApi("token", domain="github.example.com") as api:
            assert api.api_root == "https://github.example.com/api/v3"
