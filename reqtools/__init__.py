import logging
import os
from argparse import ArgumentParser
from importlib import metadata

LOG_LEVEL_ENV = "GIT_REQ_LOGLEVEL"

SHELLS = ("bash", "fish", "zsh")


def get_log_level(level_name: str) -> int:
    """
    Returns a logging level for the given name, defaulting to WARNING
    """
    levels = {
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
        "warn": logging.WARNING,
        "warning": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG,
    }
    level = levels.get(level_name.lower())
    if level is None:
        level = logging.WARNING
    return level


def _version() -> str:
    try:
        return metadata.version("git-req")
    except metadata.PackageNotFoundError:
        return "unknown"


def common_args(description: str) -> ArgumentParser:
    """
    Constructs the ArgumentParser for git req.  The modes (a request ID, listing,
    or one of the config changes) are mutually exclusive.
    """
    parser = ArgumentParser(
        prog="git req",
        description=description,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_version()}",
    )

    # The remote to talk to, otherwise the default one
    parser.add_argument(
        "-u",
        "--use-remote",
        dest="remote_name",
        metavar="REMOTE_NAME",
        help="The remote to be used for this command",
    )

    # Allows configuration of log level for debugging
    parser.add_argument(
        "--loglevel",
        default=os.environ.get(LOG_LEVEL_ENV, "warning"),
        help="Configures the logging level",
    )

    modes = parser.add_mutually_exclusive_group(required=True)
    modes.add_argument(
        "request_id",
        nargs="?",
        metavar="REQUEST_ID",
        help="The ID of the MR or PR, or '-' to reference the one previously checked out",
    )
    modes.add_argument(
        "-l",
        "--list",
        dest="list_requests",
        action="store_true",
        help="List all open requests against the repository",
    )
    modes.add_argument(
        "--set-project-id",
        dest="new_project_id",
        metavar="PROJECT_ID",
        help="Set a project ID for the current repository",
    )
    modes.add_argument(
        "--clear-project-id",
        action="store_true",
        help="Clear the project ID for the current repository",
    )
    modes.add_argument(
        "--set-domain-key",
        dest="new_domain_key",
        metavar="DOMAIN_KEY",
        help="Set the API key for the current repository's domain",
    )
    modes.add_argument(
        "--clear-domain-key",
        action="store_true",
        help="Clear the API key for the current repository's domain",
    )
    modes.add_argument(
        "--set-default-remote",
        dest="new_default_remote",
        metavar="REMOTE_NAME",
        help="Set the name of the default remote for the repository",
    )
    modes.add_argument(
        "--completions",
        dest="generate_completions",
        choices=SHELLS,
        metavar="SHELL_NAME",
        help="Generate a shell completion file for bash, fish or zsh",
    )

    return parser
