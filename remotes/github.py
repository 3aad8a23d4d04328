import functools
import logging

from remotes.base import RemoteEndpointResponse
from remotes.base import RequestApi
from remotes.models import GithubPullRequest
from remotes.models import MergeRequest
from remotes.models import RemoteUrl
from remotes.models import RequestState

logger = logging.getLogger(__name__)

GITHUB_DOMAIN = "github.com"
GITHUB_API_ROOT = "https://api.github.com"


class PullRequest(RemoteEndpointResponse[GithubPullRequest]):
    def __init__(self, data: GithubPullRequest) -> None:
        super().__init__(data)
        self.number: int = self._data["number"]
        self.state: str = self._data["state"]
        self.head_ref: str = self._data["head"]["ref"]

    @functools.cached_property
    def merged(self) -> bool:
        return self._data.get("merged_at") is not None

    def to_request(self) -> MergeRequest:
        if self.merged:
            state = RequestState.MERGED
        elif self.state.lower() == "closed":
            state = RequestState.CLOSED
        else:
            state = RequestState.OPEN
        return MergeRequest(
            id=self.number,
            source_branch=self.head_ref,
            title=self._data.get("title", ""),
            state=state,
            web_url=self._data.get("html_url"),
        )


class GithubPullRequestApi(RequestApi[GithubPullRequest]):
    """
    Wrapper around the pulls API.  The project ID is the "owner/repo" path.

    See https://docs.github.com/en/rest/pulls/pulls
    """

    GET_PR_API_ENDPOINT = "/repos/{PROJECT}/pulls/{PULL_NUMBER}"
    LIST_PR_API_ENDPOINT = "/repos/{PROJECT}/pulls"

    # Pull request heads may live in forks, so they are fetched through the
    # base repository's pull/N/head ref
    VIRTUAL_REMOTE_BRANCHES = True

    def __init__(self, token: str, domain: str = GITHUB_DOMAIN) -> None:
        # GitHub Enterprise serves the API under /api/v3 on its own host
        api_root = GITHUB_API_ROOT if domain == GITHUB_DOMAIN else f"https://{domain}/api/v3"
        super().__init__(api_root, token, domain)

    def _auth_headers(self, token: str) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json", "X-GitHub-Api-Version": "2022-11-28"}
        if token:
            headers["Authorization"] = f"token {token}"
        return headers

    def get_request(self, project_id: str, request_id: int) -> MergeRequest:
        endpoint = self.GET_PR_API_ENDPOINT.format(PROJECT=project_id, PULL_NUMBER=request_id)
        return PullRequest(self.get(endpoint)).to_request()

    def open_requests(self, project_id: str) -> list[MergeRequest]:
        endpoint = self.LIST_PR_API_ENDPOINT.format(PROJECT=project_id)
        query_params = {"state": "open", "per_page": 100}
        resp = self.list(endpoint, query_params=query_params)
        return [PullRequest(x).to_request() for x in resp]

    def find_project_id(self, remote_url: RemoteUrl) -> str:
        logger.debug(f"Using {remote_url.path} as the GitHub project")
        return remote_url.path

    def remote_branch(self, request: MergeRequest) -> str:
        return f"pull/{request.id}/head"

    def local_branch(self, request: MergeRequest) -> str:
        return f"pr/{request.id}"
