class HealthLogError(RuntimeError):
    pass


class StoreConfigError(HealthLogError):
    pass


class RecordValidationError(HealthLogError):
    pass


class ImportFormatError(HealthLogError):
    pass


class NoValidRowsError(HealthLogError):
    def __init__(self, message: str = "No valid records found. Make sure the file has a weight column with positive values."):
        super().__init__(message)


class DuplicateDatesError(HealthLogError):
    """Raised when an import batch would overwrite days that already have a record."""

    def __init__(self, dates: list[str]):
        self.dates = sorted(dates)
        super().__init__(
            "Import rejected: records already exist for these dates. "
            f"Edit the file and try again. Duplicate dates: {self.display()}"
        )

    def display(self) -> str:
        return ", ".join(self.dates)


class StoreError(HealthLogError):
    pass


class PartialWriteError(StoreError):
    """A chunk failed after earlier chunks were already committed."""

    def __init__(self, committed: int, cause: Exception, action: str = "saved"):
        self.committed = committed
        self.cause = cause
        super().__init__(f"Stopped after {committed} records were {action}: {cause}")


class AssistantError(HealthLogError):
    pass
