"""apicompat error types.

Input errors abort a run before any comparison work starts. Load errors
inside a single package never raise from the loader; they are recorded on
the package snapshot and surface through the report instead.
"""


class ApicompatError(Exception):
    """Base error for apicompat."""

    pass


class UsageError(ApicompatError):
    """Bad flags, arguments, or repository state supplied by the user."""

    pass


class VersionError(UsageError):
    """A version string is not a usable semantic version."""

    def __init__(self, message: str, version: str = "") -> None:
        super().__init__(message)
        self.version = version


class ModulePathError(UsageError):
    """A module path is malformed or inconsistent with its location."""

    def __init__(self, message: str, module_path: str = "") -> None:
        super().__init__(message)
        self.module_path = module_path


class ModuleRootError(UsageError):
    """No go.mod was found for the working directory."""

    def __init__(self, path: str) -> None:
        super().__init__(f"could not find go.mod in any parent directory of {path}")
        self.path = path


class PendingChangesError(UsageError):
    """The working tree has uncommitted changes."""

    def __init__(self, root: str) -> None:
        super().__init__("there are uncommitted changes in the current repository")
        self.root = root


class GitError(ApicompatError):
    """A git command failed."""

    def __init__(self, message: str, args: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.git_args = args


class PackageLoadError(ApicompatError):
    """Symbols were requested from a package that failed to load."""

    def __init__(self, path: str, errors: list[str]) -> None:
        first = errors[0] if errors else "unknown error"
        super().__init__(f"package {path} has errors: {first}")
        self.path = path
        self.errors = errors
