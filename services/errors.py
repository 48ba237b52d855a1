class BackupError(Exception):
    """Base class for every failure raised inside a backup job."""


class BackupConnectionError(BackupError):
    """The database could not be reached or rejected the credentials."""


class TableExportError(BackupError):
    def __init__(self, table_name: str, message: str):
        super().__init__(f"Export of table '{table_name}' failed: {message}")
        self.table_name = table_name


class DumpToolError(BackupError):
    """An external dump utility is missing or exited with an error."""


class CompressionError(BackupError):
    pass


class UploadError(BackupError):
    pass


class ConfigurationError(BackupError):
    pass


class UnknownDatabaseTypeError(ConfigurationError):
    def __init__(self, database_type: str, supported):
        super().__init__(
            f"Unknown database type '{database_type}'. Supported: {', '.join(sorted(supported))}"
        )
        self.database_type = database_type
