#!/usr/bin/env python3

import getpass
import logging
import sys

from remotes.base import RequestApi
from remotes.hosts import get_request_api
from remotes.hosts import parse_remote_url
from remotes.models import MergeRequest
from remotes.models import RemoteUrl
from remotes.models import RequestState
from reqtools import common_args
from reqtools import completions
from reqtools import get_log_level
from reqtools import git
from reqtools.config import GlobalConfig
from reqtools.config import ProjectBinding
from reqtools.config import RepoConfig
from reqtools.errors import ConfigMissingError
from reqtools.errors import GitReqError
from reqtools.errors import NotFoundError

logger = logging.getLogger("git-req")

DESCRIPTION = "Switch between merge/pull requests in your GitLab and GitHub repositories with just the request ID"

PREVIOUS_REQUEST = "-"


class Config:
    def __init__(self, args) -> None:
        self.log_level: int = get_log_level(args.loglevel)
        self.remote_name: str | None = args.remote_name
        self.request_id: str | None = args.request_id
        self.list_requests: bool = args.list_requests
        self.new_project_id: str | None = args.new_project_id
        self.clear_project_id: bool = args.clear_project_id
        self.new_domain_key: str | None = args.new_domain_key
        self.clear_domain_key: bool = args.clear_domain_key
        self.new_default_remote: str | None = args.new_default_remote
        self.generate_completions: str | None = args.generate_completions

    @property
    def changes_config(self) -> bool:
        return (
            self.new_project_id is not None
            or self.clear_project_id
            or self.new_domain_key is not None
            or self.clear_domain_key
            or self.new_default_remote is not None
        )


class RemoteContext:
    """
    The remote a command runs against, with its parsed URL and whether it is
    the repository's default remote
    """

    def __init__(self, repo: RepoConfig, name: str, default_remote: str | None) -> None:
        self.repo = repo
        self.name = name
        self.default_remote = default_remote
        self.url: RemoteUrl = parse_remote_url(git.get_remote_url(name, repo.repo_path))

    @property
    def is_default(self) -> bool:
        return self.name == self.default_remote


def prompt(label: str, missing: str, *, secret: bool = False) -> str:
    """
    Asks the user for a value, failing with ConfigMissingError when there is
    no terminal to ask on or nothing was entered
    """
    if not sys.stdin.isatty():
        raise ConfigMissingError(missing)
    value = getpass.getpass(f"{label}: ") if secret else input(f"{label}: ")
    value = value.strip()
    if not value:
        raise ConfigMissingError(missing)
    return value


def _resolve_remote(config: Config, repo: RepoConfig) -> RemoteContext:
    repo.migrate_legacy()
    default_remote = repo.get_default_remote()
    if default_remote is None:
        try:
            default_remote = git.guess_default_remote_name(repo.repo_path)
        except ConfigMissingError:
            if config.remote_name is None:
                raise
        else:
            logger.info(f"No default remote configured, using {default_remote}")
    # An unscoped legacy project ID belongs to the default remote
    if default_remote is not None:
        repo.migrate_legacy(default_remote)
    remote_name = config.remote_name or default_remote
    if remote_name != default_remote:
        repo.migrate_legacy(remote_name)

    remote = RemoteContext(repo, remote_name, default_remote)  # type: ignore[arg-type]
    logger.debug(f"Using remote {remote.name} ({remote.url.url})")
    return remote


def _resolve_api_key(global_config: GlobalConfig, domain: str) -> tuple[str, bool]:
    """
    The stored API key for the domain, otherwise one prompted for.  The flag
    is True when the key still has to be stored.
    """
    api_key = global_config.get_credential(domain)
    if api_key is not None:
        return api_key, False
    print(f"No API token for {domain} found.", file=sys.stderr)
    api_key = prompt(
        f"{domain} API token",
        f"No API key configured for {domain}, set one with `git req --set-domain-key`",
        secret=True,
    )
    return api_key, True


def _resolve_project_id(api: RequestApi, remote: RemoteContext) -> tuple[str, bool]:
    """
    The stored project ID for the remote, otherwise one looked up through the
    API or prompted for.  The flag is True when the ID still has to be stored.
    """
    binding = remote.repo.get_project_binding(remote.name)
    if binding is not None:
        return binding.project_id, False
    try:
        project_id = api.find_project_id(remote.url)
    except NotFoundError as exc:
        logger.info(f"Could not look up the project ID: {exc}")
        try:
            project_id = prompt(f"{remote.url.path} project ID", str(exc))
        except ConfigMissingError:
            raise exc from None
    logger.info(f"Got project ID: {project_id}")
    return project_id, True


def _store_lookups(
    global_config: GlobalConfig,
    remote: RemoteContext,
    api_key: str | None,
    project_id: str | None,
) -> None:
    """
    Persists a prompted API key or discovered project ID, once a request made
    with them has succeeded
    """
    if api_key is not None:
        global_config.set_credential(remote.url.domain, api_key)
    if project_id is not None:
        remote.repo.set_project_binding(remote.name, ProjectBinding(project_id=project_id))


def _fetch(
    remote: RemoteContext,
    global_config: GlobalConfig,
    request_id: int | None,
) -> tuple[RequestApi, list[MergeRequest]]:
    """
    Fetches one request, or every open one when request_id is None
    """
    api_key, new_key = _resolve_api_key(global_config, remote.url.domain)
    with get_request_api(remote.url, api_key) as api:
        project_id, new_project_id = _resolve_project_id(api, remote)
        if request_id is None:
            requests = api.open_requests(project_id)
        else:
            requests = [api.get_request(project_id, request_id)]
    _store_lookups(
        global_config,
        remote,
        api_key if new_key else None,
        project_id if new_project_id else None,
    )
    return api, requests


def _list_requests(remote: RemoteContext, global_config: GlobalConfig) -> None:
    _, requests = _fetch(remote, global_config, None)
    if not requests:
        print(f"No open requests for {remote.url.path}")
        return
    for request in requests:
        print(f"{request.id:>6}  {request.title} [{request.source_branch}]")


def _checkout_request(
    remote: RemoteContext,
    global_config: GlobalConfig,
    request_id: int,
) -> None:
    logger.info(f"Getting request: {request_id}")
    api, (request,) = _fetch(remote, global_config, request_id)
    if request.state != RequestState.OPEN:
        logger.warning(f"Request {request.id} is {request.state.value}")

    remote_branch = api.remote_branch(request)
    local_branch = api.local_branch(request)
    if not remote.is_default:
        local_branch = f"req/{remote.name}/{local_branch}"
    logger.debug(f"Got branch name: {local_branch}")

    result = git.checkout_branch(
        remote.name,
        remote_branch,
        local_branch,
        virtual_remote_branch=api.VIRTUAL_REMOTE_BRANCHES,
        cwd=remote.repo.repo_path,
    )
    remote.repo.record_checkout(local_branch)
    if result == git.CheckoutResult.BRANCH_UNCHANGED:
        print(f"Already on '{local_branch}'")
    else:
        print(f"Switched to branch '{local_branch}' for request {request.id}: {request.title}")
    if request.web_url:
        print(request.web_url)


def _checkout_previous(repo: RepoConfig) -> None:
    """
    Returns to the branch of the request checked out before this one.  When
    HEAD has moved off the last request's branch, that branch is the target.
    """
    markers = repo.get_checkout_markers()
    head = git.current_branch(repo.repo_path)
    if markers.current is not None and head != markers.current:
        target = markers.current
    else:
        target = markers.previous
    if target is None:
        raise ConfigMissingError("No previously checked out request to return to")

    logger.info(f"Returning to {target}")
    result = git.checkout(target, repo.repo_path)
    repo.record_checkout(target)
    if result == git.CheckoutResult.BRANCH_UNCHANGED:
        print(f"Already on '{target}'")
    else:
        print(f"Switched to branch '{target}'")


def _change_config(config: Config, repo: RepoConfig, global_config: GlobalConfig) -> None:
    if config.new_default_remote is not None:
        if config.new_default_remote not in git.get_remotes(repo.repo_path):
            raise ConfigMissingError(f"No remote named '{config.new_default_remote}' in this repository")
        repo.set_default_remote(config.new_default_remote)
        print(f"Default remote set to {config.new_default_remote}")
        return

    remote = _resolve_remote(config, repo)
    if config.new_project_id is not None:
        repo.set_project_binding(remote.name, ProjectBinding(project_id=config.new_project_id))
        print(f"Project ID for {remote.name} set to {config.new_project_id}")
    elif config.clear_project_id:
        if repo.clear_project_binding(remote.name):
            print(f"Project ID for {remote.name} cleared")
        else:
            print(f"No project ID was set for {remote.name}")
    elif config.new_domain_key is not None:
        global_config.set_credential(remote.url.domain, config.new_domain_key)
        print(f"API key for {remote.url.domain} set")
    elif config.clear_domain_key:
        if global_config.clear_credential(remote.url.domain):
            print(f"API key for {remote.url.domain} cleared")
        else:
            print(f"No API key was set for {remote.url.domain}")


def _main(argv: list[str] | None = None) -> None:
    parser = common_args(DESCRIPTION)
    config = Config(parser.parse_args(argv))

    request_number: int | None = None
    if config.request_id is not None and config.request_id != PREVIOUS_REQUEST:
        try:
            request_number = int(config.request_id)
        except ValueError:
            parser.error(f"REQUEST_ID must be a number or '{PREVIOUS_REQUEST}', not {config.request_id!r}")
        if request_number <= 0:
            parser.error("REQUEST_ID must be a positive number")
    if config.generate_completions is not None and config.remote_name is not None:
        parser.error("argument --completions: not allowed with argument -u/--use-remote")

    logging.basicConfig(
        level=config.log_level,
        datefmt="%Y-%m-%d %H:%M:%S",
        format="[%(asctime)s] [%(levelname)-8s] [%(name)-10s] %(message)s",
    )
    # https likes to log at INFO, reduce that
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    if config.generate_completions is not None:
        print(completions.generate(config.generate_completions, parser), end="")
        return

    repo = RepoConfig(git.repo_root())
    global_config = GlobalConfig()

    if config.changes_config:
        _change_config(config, repo, global_config)
    elif config.request_id == PREVIOUS_REQUEST:
        _checkout_previous(repo)
    elif config.list_requests:
        _list_requests(_resolve_remote(config, repo), global_config)
    else:
        _checkout_request(_resolve_remote(config, repo), global_config, request_number)  # type: ignore[arg-type]


def main(argv: list[str] | None = None) -> int:
    try:
        _main(argv)
    except KeyboardInterrupt:
        return 130
    except GitReqError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"git-req: error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    finally:
        logging.shutdown()
