class ExplainError(Exception):
    """Base class for run-fatal errors."""


class ConfigError(ExplainError):
    pass


class DiscoveryError(ExplainError):
    """A file or directory under the analyzed root could not be read."""


class ExtractionError(ExplainError):
    def __init__(self, file_path: str, message: str) -> None:
        super().__init__(f"{file_path}: {message}")
        self.file_path = file_path


class CacheWriteError(ExplainError):
    pass
