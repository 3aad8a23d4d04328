"""
This module contains the shared pieces for talking to the hosting APIs.

RemoteApiBase owns the HTTP session, the authorization header and the mapping
of failed responses onto git-req errors.  RequestApi is the interface both
GitLab and GitHub implement, so the rest of git-req only ever deals with the
normalized MergeRequest.

Nothing here retries: a failure is reported to the user straight away.
"""

import abc
import builtins
import logging
import re
from http import HTTPStatus
from typing import Any
from typing import ClassVar
from typing import Generic
from typing import TypeVar

import httpx

from remotes.models import MergeRequest
from remotes.models import RemoteUrl
from reqtools.errors import ApiError
from reqtools.errors import AuthError
from reqtools.errors import NetworkError
from reqtools.errors import NotFoundError
from reqtools.errors import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteApiBase(Generic[T]):
    """
    A base class for interacting with a hosting API.  It
    will handle the session and setting authorization headers.
    """

    def __init__(self, api_root: str, token: str, domain: str, timeout: float = 30.0) -> None:
        self.api_root = api_root.rstrip("/")
        self.domain = domain
        self._token = token
        self._client: httpx.Client = httpx.Client(
            http2=True,
            base_url=self.api_root,
            timeout=timeout,
            headers={
                "Accept": "application/json",
                **self._auth_headers(token),
            },
        )

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """
        Ensures the authorization token is cleaned up no matter
        the reason for the exit
        """
        for header in self._auth_headers(self._token):
            if header in self._client.headers:
                del self._client.headers[header]

        # Close the session as well
        self._client.close()

    def _request(self, endpoint: str, query_params: dict | None = None) -> httpx.Response:
        try:
            resp = self._client.get(endpoint, params=query_params)
        except httpx.TransportError as exc:
            msg = f"Could not reach {self.domain}: {exc}"
            logger.error(msg)
            raise NetworkError(msg) from exc
        logger.debug(f"Request to {resp.request.url} returned HTTP {resp.status_code}")
        self._check_response(endpoint, resp)
        return resp

    def _check_response(self, endpoint: str, resp: httpx.Response) -> None:
        """
        Raises the git-req error matching a failed response
        """
        if resp.status_code == HTTPStatus.OK:
            return

        msg = f"Request to {endpoint} returned HTTP {resp.status_code}"
        logger.error(msg)
        if resp.status_code == HTTPStatus.FORBIDDEN and resp.headers.get("X-RateLimit-Remaining") == "0":
            raise RateLimitError(f"Rate limited by {self.domain}, try again later", resp.status_code)
        if resp.status_code in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN):
            raise AuthError(f"{self.domain} rejected the API key", resp.status_code, domain=self.domain)
        if resp.status_code == HTTPStatus.NOT_FOUND:
            raise NotFoundError(msg, resp.status_code)
        raise ApiError(msg, resp.status_code)

    def _decode(self, endpoint: str, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(f"Malformed response from {endpoint}", resp.status_code) from exc

    def _parse_link_header(self, link_header: str) -> dict[str, str]:
        """
        Parse the Link header to extract URLs for pagination.
        Returns a dict like {'next': 'url', 'last': 'url', 'first': 'url', 'prev': 'url'}
        GitLab and GitHub both paginate this way.
        """
        links: dict[str, str] = {}
        if not link_header:
            return links

        for link in link_header.split(","):
            parts = link.strip().split(";")
            if len(parts) != 2:
                continue
            url = parts[0].strip("<> ")
            rel_match = re.search(r'rel="(\w+)"', parts[1])
            if rel_match:
                links[rel_match.group(1)] = url

        return links

    def get(self, endpoint: str, query_params: dict | None = None) -> T:
        """
        Get a single resource from the API.
        """
        return self._decode(endpoint, self._request(endpoint, query_params))

    def list(self, endpoint: str, query_params: dict | None = None) -> builtins.list[T]:
        """
        List all resources from an endpoint, following the pages one at a time.
        """
        resp = self._request(endpoint, query_params)
        combined_data: builtins.list[T] = builtins.list(self._decode(endpoint, resp))

        next_url = self._parse_link_header(resp.headers.get("Link", "")).get("next")
        while next_url:
            logger.debug(f"Fetching next page: {next_url}")
            # The next link already carries the query parameters
            resp = self._request(next_url)
            combined_data.extend(self._decode(next_url, resp))
            next_url = self._parse_link_header(resp.headers.get("Link", "")).get("next")

        return combined_data


class RemoteEndpointResponse(Generic[T]):
    """
    For all endpoint JSON responses, store the full
    response data, for ease of extending later, if need be.
    """

    def __init__(self, data: T) -> None:
        self._data = data


class RequestApi(RemoteApiBase[T], abc.ABC):
    """
    The operations git-req needs from a hosting service
    """

    # True when the remote branch is a read-only ref, such as GitHub's
    # pull/N/head, which has to be fetched into a local branch
    VIRTUAL_REMOTE_BRANCHES: ClassVar[bool] = False

    @abc.abstractmethod
    def get_request(self, project_id: str, request_id: int) -> MergeRequest:
        """
        Fetches one merge/pull request of the project
        """

    @abc.abstractmethod
    def open_requests(self, project_id: str) -> builtins.list[MergeRequest]:
        """
        Fetches every open merge/pull request of the project
        """

    @abc.abstractmethod
    def find_project_id(self, remote_url: RemoteUrl) -> str:
        """
        Works out the project ID for a remote when none is configured
        """

    def remote_branch(self, request: MergeRequest) -> str:
        return request.source_branch

    def local_branch(self, request: MergeRequest) -> str:
        return request.source_branch
