"""
Works out which hosting service a git remote points at, and builds the API
wrapper for it.  Anything that is not GitHub is treated as GitLab, since
GitLab is the one commonly self-hosted under arbitrary domains.
"""

import logging
import re
import urllib.parse

from remotes.base import RequestApi
from remotes.github import GITHUB_DOMAIN
from remotes.github import GithubPullRequestApi
from remotes.gitlab import GitlabMergeRequestApi
from remotes.models import RemoteUrl
from reqtools.errors import RemoteUrlError

logger = logging.getLogger(__name__)

# scp-like syntax, e.g. git@gitlab.com:group/project.git
_SCP_LIKE_URL = re.compile(r"^(?:[^@/]+@)?(?P<domain>[^:/]+):(?P<path>.+)$")


def parse_remote_url(url: str) -> RemoteUrl:
    """
    Splits a remote URL into the domain and the project path, accepting the
    https://, ssh:// and scp-like forms with or without a trailing .git
    """
    url = url.strip()
    logger.debug(f"Parsing remote URL: {url}")
    if "://" in url:
        parsed = urllib.parse.urlsplit(url)
        domain = parsed.hostname or ""
        path = parsed.path
    else:
        match = _SCP_LIKE_URL.match(url)
        if match is None:
            raise RemoteUrlError(f"Could not find a hosting domain in the remote URL {url}")
        domain = match.group("domain").lower()
        path = match.group("path")

    path = path.strip("/").removesuffix(".git").rstrip("/")
    if not domain or "/" not in path:
        raise RemoteUrlError(f"Could not parse the project path from the remote URL {url}")
    return RemoteUrl(url=url, domain=domain, path=path)


def is_github(domain: str) -> bool:
    return domain == GITHUB_DOMAIN or domain.startswith("github.")


def get_request_api(remote_url: RemoteUrl, api_key: str) -> RequestApi:
    """
    The API wrapper matching the remote's host
    """
    if is_github(remote_url.domain):
        logger.debug(f"Treating {remote_url.domain} as GitHub")
        return GithubPullRequestApi(api_key, remote_url.domain)
    logger.debug(f"Treating {remote_url.domain} as GitLab")
    return GitlabMergeRequestApi(api_key, remote_url.domain)
