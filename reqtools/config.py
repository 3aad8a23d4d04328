"""
The two stores git-req keeps its settings in.

GlobalConfig is an INI file in the user's home directory holding one API key
per hosting domain.  RepoConfig lives in the repository's own git config under
the [req] section, holding the project ID for each remote, the default remote
and the branches most recently checked out through git-req.
"""

import configparser
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from reqtools import git
from reqtools.errors import ConfigFileError

logger = logging.getLogger(__name__)

GLOBAL_CONFIG_ENV = "GIT_REQ_CONFIG"
GLOBAL_CONFIG_NAME = ".gitreqconfig"

API_KEY = "api_key"

# Older releases wrote the global file in git-config syntax
_LEGACY_API_KEY = "apikey"

# Repository keys written by older releases
_LEGACY_PROJECT_ID = "projectid"
_LEGACY_DEFAULT_REMOTE = "defaultremote"


def _legacy_section(domain: str) -> str:
    return f'req "{domain.replace(".", "|")}"'


def default_global_config_path() -> Path:
    override = os.environ.get(GLOBAL_CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / GLOBAL_CONFIG_NAME


class GlobalConfig:
    """
    Per-domain API keys, shared by every repository of the user
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path if path is not None else default_global_config_path()

    def _read(self) -> configparser.ConfigParser:
        parser = configparser.ConfigParser(interpolation=None)
        # A missing file reads as empty
        try:
            parser.read(self.path, encoding="utf-8")
        except (configparser.Error, UnicodeDecodeError) as exc:
            raise ConfigFileError(f"Could not read the git-req config file {self.path}: {exc}") from exc
        return parser

    def _write(self, parser: configparser.ConfigParser) -> None:
        """
        Replaces the whole file at once, so a reader never sees half of it
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f"{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                parser.write(handle)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get_credential(self, domain: str) -> str | None:
        parser = self._read()
        if parser.has_option(domain, API_KEY):
            return parser.get(domain, API_KEY)
        legacy = _legacy_section(domain)
        if parser.has_option(legacy, _LEGACY_API_KEY):
            logger.debug(f"Using legacy API key entry for {domain}")
            return parser.get(legacy, _LEGACY_API_KEY)
        return None

    def set_credential(self, domain: str, api_key: str) -> None:
        parser = self._read()
        if not parser.has_section(domain):
            parser.add_section(domain)
        parser.set(domain, API_KEY, api_key)
        self._write(parser)
        logger.info(f"Stored API key for {domain}")

    def clear_credential(self, domain: str) -> bool:
        """
        Removes the key for the domain, returning False if none was stored
        """
        parser = self._read()
        removed = False
        for section in (domain, _legacy_section(domain)):
            if parser.has_section(section):
                parser.remove_section(section)
                removed = True
        if removed:
            self._write(parser)
            logger.info(f"Cleared API key for {domain}")
        return removed


@dataclass(frozen=True, slots=True)
class ProjectBinding:
    """
    The hosting service's project ID for one remote of a repository
    """

    project_id: str
    default_remote: str | None = None


@dataclass(frozen=True, slots=True)
class CheckoutMarkers:
    current: str | None
    previous: str | None


class RepoConfig:
    """
    git-req settings stored in the repository's local git config
    """

    SECTION = "req"
    PROJECT_ID = "project-id"
    DEFAULT_REMOTE = "default-remote"
    CURRENT_BRANCH = "current-branch"
    PREVIOUS_BRANCH = "previous-branch"

    def __init__(self, repo_path: Path | None = None) -> None:
        self.repo_path = repo_path

    def _key(self, name: str, remote: str | None = None) -> str:
        if remote is None:
            return f"{self.SECTION}.{name}"
        return f"{self.SECTION}.{remote}.{name}"

    def _rename_key(self, old_key: str, new_key: str) -> None:
        value = git.config_get(old_key, self.repo_path)
        if value is None:
            return
        if git.config_get(new_key, self.repo_path) is not None:
            logger.debug(f"Not migrating {old_key}, {new_key} is already set")
            return
        logger.info(f"Migrating {old_key} to {new_key}")
        git.config_set(new_key, value, self.repo_path)
        git.config_unset(old_key, self.repo_path)

    def migrate_legacy(self, remote: str | None = None) -> None:
        """
        Renames the keys older releases wrote: req.defaultremote, and the
        project ID stored as req.<remote>.projectid or, before remotes were
        supported, as req.projectid
        """
        self._rename_key(self._key(_LEGACY_DEFAULT_REMOTE), self._key(self.DEFAULT_REMOTE))
        if remote is None:
            return
        new_key = self._key(self.PROJECT_ID, remote)
        self._rename_key(self._key(_LEGACY_PROJECT_ID, remote), new_key)
        self._rename_key(self._key(_LEGACY_PROJECT_ID), new_key)

    def get_default_remote(self) -> str | None:
        return git.config_get(self._key(self.DEFAULT_REMOTE), self.repo_path)

    def set_default_remote(self, remote: str) -> None:
        git.config_set(self._key(self.DEFAULT_REMOTE), remote, self.repo_path)

    def get_project_binding(self, remote: str) -> ProjectBinding | None:
        project_id = git.config_get(self._key(self.PROJECT_ID, remote), self.repo_path)
        if project_id is None:
            logger.debug(f"No project ID found for {remote}")
            return None
        return ProjectBinding(project_id=project_id, default_remote=self.get_default_remote())

    def set_project_binding(self, remote: str, binding: ProjectBinding) -> None:
        git.config_set(self._key(self.PROJECT_ID, remote), binding.project_id, self.repo_path)
        if binding.default_remote is not None:
            self.set_default_remote(binding.default_remote)

    def clear_project_binding(self, remote: str) -> bool:
        return git.config_unset(self._key(self.PROJECT_ID, remote), self.repo_path)

    def get_checkout_markers(self) -> CheckoutMarkers:
        return CheckoutMarkers(
            current=git.config_get(self._key(self.CURRENT_BRANCH), self.repo_path),
            previous=git.config_get(self._key(self.PREVIOUS_BRANCH), self.repo_path),
        )

    def record_checkout(self, branch: str) -> None:
        """
        Makes branch the current marker, moving the old current one to previous
        """
        markers = self.get_checkout_markers()
        if markers.current is not None and markers.current != branch:
            git.config_set(self._key(self.PREVIOUS_BRANCH), markers.current, self.repo_path)
        git.config_set(self._key(self.CURRENT_BRANCH), branch, self.repo_path)
