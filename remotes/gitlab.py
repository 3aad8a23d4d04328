import logging
import urllib.parse

from remotes.base import RemoteEndpointResponse
from remotes.base import RequestApi
from remotes.models import GitlabMergeRequest
from remotes.models import GitlabNamespace
from remotes.models import GitlabProject
from remotes.models import MergeRequest
from remotes.models import RemoteUrl
from remotes.models import RequestState
from reqtools.errors import NotFoundError

logger = logging.getLogger(__name__)

PROJECT_ID_HELP = "Set the project ID by hand with `git req --set-project-id`"

_STATES = {
    "opened": RequestState.OPEN,
    "locked": RequestState.OPEN,
    "closed": RequestState.CLOSED,
    "merged": RequestState.MERGED,
}


class GitlabRequest(RemoteEndpointResponse[GitlabMergeRequest]):
    def __init__(self, data: GitlabMergeRequest) -> None:
        super().__init__(data)
        # iid is the number shown in the UI, id is global to the instance
        self.iid: int = self._data["iid"]
        self.source_branch: str = self._data["source_branch"]
        self.state: str = self._data.get("state", "opened")

    def to_request(self) -> MergeRequest:
        return MergeRequest(
            id=self.iid,
            source_branch=self.source_branch,
            title=self._data.get("title", ""),
            state=_STATES.get(self.state.lower(), RequestState.OPEN),
            web_url=self._data.get("web_url"),
        )


class GitlabMergeRequestApi(RequestApi[GitlabMergeRequest]):
    """
    Wrapper around the merge requests API.  The project ID is GitLab's
    numeric project ID.

    See https://docs.gitlab.com/ee/api/merge_requests.html
    """

    GET_MR_API_ENDPOINT = "/projects/{PROJECT_ID}/merge_requests/{MR_IID}"
    LIST_MR_API_ENDPOINT = "/projects/{PROJECT_ID}/merge_requests"
    PROJECT_API_ENDPOINT = "/projects/{PROJECT_PATH}"
    NAMESPACE_API_ENDPOINT = "/namespaces/{NAMESPACE}"
    USER_PROJECTS_API_ENDPOINT = "/users/{ID}/projects"
    GROUP_PROJECTS_API_ENDPOINT = "/groups/{ID}/projects"

    def __init__(self, token: str, domain: str) -> None:
        super().__init__(f"https://{domain}/api/v4", token, domain)

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"PRIVATE-TOKEN": token}

    def get_request(self, project_id: str, request_id: int) -> MergeRequest:
        endpoint = self.GET_MR_API_ENDPOINT.format(PROJECT_ID=project_id, MR_IID=request_id)
        return GitlabRequest(self.get(endpoint)).to_request()

    def open_requests(self, project_id: str) -> list[MergeRequest]:
        endpoint = self.LIST_MR_API_ENDPOINT.format(PROJECT_ID=project_id)
        query_params = {"state": "opened", "per_page": 100}
        return [GitlabRequest(x).to_request() for x in self.list(endpoint, query_params=query_params)]

    def find_project_id(self, remote_url: RemoteUrl) -> str:
        """
        Looks the project up by its full path, falling back to searching the
        projects of its namespace
        """
        endpoint = self.PROJECT_API_ENDPOINT.format(
            PROJECT_PATH=urllib.parse.quote(remote_url.path, safe=""),
        )
        logger.debug(f"Attempting direct project ID lookup: {endpoint}")
        try:
            project: GitlabProject = self.get(endpoint)  # type: ignore[assignment]
        except NotFoundError:
            logger.debug("Direct lookup unsuccessful. Attempting search strategy.")
            try:
                return str(self._search_project_id(remote_url))
            except NotFoundError as exc:
                raise NotFoundError(
                    f"Unable to get the project ID for {remote_url.path} from the GitLab API.\n{PROJECT_ID_HELP}",
                    exc.status_code,
                ) from exc
        logger.debug(f"Direct lookup found project {project['path_with_namespace']}")
        return str(project["id"])

    def _search_project_id(self, remote_url: RemoteUrl) -> int:
        # The closest enclosing namespace, which is a subgroup for nested projects
        parent_path = remote_url.path.rsplit("/", 1)[0]
        namespace_endpoint = self.NAMESPACE_API_ENDPOINT.format(
            NAMESPACE=urllib.parse.quote(parent_path, safe=""),
        )
        namespace: GitlabNamespace = self.get(namespace_endpoint)  # type: ignore[assignment]
        logger.debug(f"Querying {namespace['kind']} namespace {namespace['full_path']}")

        if namespace["kind"] == "user":
            endpoint = self.USER_PROJECTS_API_ENDPOINT.format(ID=namespace["id"])
        elif namespace["kind"] == "group":
            endpoint = self.GROUP_PROJECTS_API_ENDPOINT.format(ID=namespace["id"])
        else:
            raise NotFoundError(f"Unknown namespace kind {namespace['kind']}")

        projects: list[GitlabProject] = self.list(  # type: ignore[assignment]
            endpoint,
            query_params={"search": remote_url.name, "per_page": 100},
        )
        for project in projects:
            if remote_url.name in (project["path"], project["name"]):
                return project["id"]
        raise NotFoundError(f"Couldn't find project {remote_url.name} in {namespace['full_path']}")
