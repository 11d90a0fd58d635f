# Common exceptions so every repository raises the same errors.


class RecordNotFound(Exception):
    """Raised when a record is not found in the database."""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record {record_id} not found")


class DatabaseUnavailable(RuntimeError):
    """Raised when the database is used before a connection was made."""


class DuplicateRecord(Exception):
    """Raised when an insert collides with a unique index."""

    def __init__(self, collection: str, detail: str = ""):
        self.collection = collection
        super().__init__(f"Duplicate {collection} record {detail}".rstrip())
