"""
Exception types raised by git-req.  Everything the command line reports to
the user derives from GitReqError, anything else is a bug.
"""


class GitReqError(Exception):
    """Base class for all git-req errors."""


class ConfigMissingError(GitReqError):
    """
    A value needed for the command (remote, API key, project ID, previous
    branch) is not configured and could not be prompted for
    """


class RemoteUrlError(GitReqError):
    """The URL of a git remote could not be understood"""


class ConfigFileError(GitReqError):
    """The global config file exists but could not be parsed"""


class ApiError(GitReqError):
    """
    The hosting API returned something unexpected
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(ApiError):
    def __init__(self, message: str, status_code: int | None = None, domain: str | None = None) -> None:
        if domain is not None:
            message = f"{message}\nCheck the API key for {domain}, it can be replaced with `git req --set-domain-key`"
        super().__init__(message, status_code)
        self.domain = domain


class NotFoundError(ApiError):
    pass


class RateLimitError(ApiError):
    pass


class NetworkError(ApiError):
    """The request never got a response"""


class GitError(GitReqError):
    """A git command failed"""


class GitCheckoutFailed(GitError):
    pass
