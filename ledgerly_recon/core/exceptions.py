from typing import List, Optional


class StatementFormatError(ValueError):
    """An uploaded statement could not be turned into transactions.

    Always recoverable: the caller can retry with another file or an explicit
    column mapping. ``str(error)`` is safe to show to the user.
    """


class SpreadsheetFileError(StatementFormatError):
    def __init__(self):
        super().__init__("This looks like a spreadsheet. Export it as delimited text (CSV) and try again.")


class StatementEncodingError(StatementFormatError):
    def __init__(self):
        super().__init__("The file encoding could not be read. Export it as UTF-8 or UTF-16 text.")


class EmptyStatementError(StatementFormatError):
    def __init__(self):
        super().__init__("The file is empty.")


class ColumnDetectionError(StatementFormatError):
    def __init__(self, headers: List[str]):
        self.headers = headers
        super().__init__(
            "Could not detect the date, description and amount columns. "
            "Choose the columns manually."
        )


class ColumnMappingError(StatementFormatError):
    def __init__(self, column: str, field: str):
        self.column = column
        self.field = field
        super().__init__(f"Column '{column}' mapped to {field} is not in the file header")


class NoRowsParsedError(StatementFormatError):
    def __init__(self):
        super().__init__("No rows parsed. Check the file format.")


class TransactionNotFoundError(ValueError):
    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__("Bank transaction not found")


class DocumentNotFoundError(ValueError):
    def __init__(self, kind: str, document_id: str):
        self.kind = kind
        self.document_id = document_id
        super().__init__(f"{kind.capitalize()} not found")


class DocumentAlreadyMatchedError(ValueError):
    def __init__(self, kind: str, document_id: str, transaction_id: Optional[str] = None):
        self.kind = kind
        self.document_id = document_id
        self.transaction_id = transaction_id
        super().__init__(f"{kind.capitalize()} {document_id} is already matched to another transaction")


class IdempotencyConflictError(ValueError):
    def __init__(self):
        super().__init__("Idempotency key reused with different payload")
