"""kuiper errors - exception hierarchy raised by request loading."""


class KuiperError(Exception):
    """Base class for every local failure reported by kuiper."""


class NotFoundError(KuiperError):
    """A file the user referenced does not exist or cannot be read."""


class RequestNotFoundError(NotFoundError):
    def __init__(self, path, reason: str = "not found"):
        self.path = path
        super().__init__(f"Request file '{path}' {reason}")


class EnvFileNotFoundError(NotFoundError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Env file '{path}' not found")


class ParseError(KuiperError):
    """Invalid JSON or an invalid value in a .kuiper or headers.json file."""

    def __init__(self, path, message: str):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class InterpolationError(ParseError):
    """A {{...}} placeholder could not be substituted."""

    def __init__(self, message: str, path=None):
        self.message = message
        super().__init__(path, message)


class PathError(KuiperError):
    """The traversal root does not contain the request file."""
