"""Turn a bank-exported delimited file into normalized transactions.

Bank exports vary in encoding, delimiter and column naming. The parser sniffs
all three; when the columns cannot be recognised the caller supplies an
explicit :class:`ColumnMapping`, which is replayed through the same row logic.
"""

import re
import uuid
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Tuple

from ledgerly_recon.core.config import settings
from ledgerly_recon.core.exceptions import (
    ColumnDetectionError,
    ColumnMappingError,
    EmptyStatementError,
    NoRowsParsedError,
    SpreadsheetFileError,
    StatementEncodingError,
)
from ledgerly_recon.core.logging import get_logger
from ledgerly_recon.schemas.bank_transaction import Transaction
from ledgerly_recon.schemas.statement import (
    AmountColumn,
    ColumnMapping,
    DebitCreditColumns,
    MoneyInOutColumns,
    OptionalColumns,
    ParsedStatement,
    StatementPreview,
)

logger = get_logger(__name__)

ZIP_SIGNATURE = b"PK\x03\x04"
BOM = "\ufeff"

# Synonyms per logical field. The first header column naming any of them wins.
DATE_HEADERS = ("date", "transaction_date", "posting_date", "value_date", "posted_date")
DESCRIPTION_HEADERS = ("description", "merchant", "narration", "details", "reference", "memo")
AMOUNT_HEADERS = ("amount", "value", "net_amount")
DEBIT_HEADERS = ("debit", "debit_amount", "withdrawal", "withdrawals")
CREDIT_HEADERS = ("credit", "credit_amount", "deposit", "deposits")
MONEY_IN_HEADERS = ("money_in", "paid_in", "in")
MONEY_OUT_HEADERS = ("money_out", "paid_out", "out")
FEE_HEADERS = ("fee", "fees", "charges")
OPTIONAL_HEADERS = {
    "currency": ("currency", "ccy"),
    "posting_date": ("posting_date",),
    "transaction_date": ("transaction_date",),
    "original_description": ("original_description",),
    "parent_category": ("parent_category",),
    "statement_category": ("category", "statement_category"),
    "nr": ("nr", "no"),
    "account": ("account", "account_number"),
    "balance": ("balance", "running_balance"),
}

_AMOUNT_NOISE = re.compile(r"[^0-9.+-]")
_WHITESPACE = re.compile(r"\s+")


class StatementParser:
    @staticmethod
    def decode(data: bytes) -> Tuple[str, str]:
        """Decode raw upload bytes. Returns (text, encoding name)"""
        if data[:4] == ZIP_SIGNATURE:
            raise SpreadsheetFileError()

        sample = data[:settings.sniff_sample_bytes]
        if sample and sample.count(0) / len(sample) > settings.utf16_null_ratio:
            text, encoding = StatementParser._decode_utf16(data, sample)
        else:
            text, encoding = data.decode("utf-8", errors="replace"), "utf-8"

        if text.startswith(BOM):
            text = text[1:]
        return text, encoding

    @staticmethod
    def _decode_utf16(data: bytes, sample: bytes) -> Tuple[str, str]:
        if sample.startswith(b"\xfe\xff"):
            candidates = ("utf-16-be", "utf-16-le")
        elif sample.startswith(b"\xff\xfe"):
            candidates = ("utf-16-le", "utf-16-be")
        elif sample[0::2].count(0) > sample[1::2].count(0):
            # ASCII text in big-endian order puts the zero byte first
            candidates = ("utf-16-be", "utf-16-le")
        else:
            candidates = ("utf-16-le", "utf-16-be")

        for encoding in candidates:
            try:
                return data.decode(encoding), encoding
            except UnicodeDecodeError:
                continue
        raise StatementEncodingError()

    @staticmethod
    def detect_delimiter(text: str) -> str:
        """Choose the delimiter from the header line only"""
        header_line = next((line for line in text.split("\n") if line.strip()), "")
        commas = header_line.count(",")
        semicolons = header_line.count(";")
        tabs = header_line.count("\t")

        if tabs > 0 and tabs >= commas and tabs >= semicolons:
            return "\t"
        if semicolons > commas:
            return ";"
        return ","

    @staticmethod
    def tokenize(text: str, delimiter: str = ",") -> List[List[str]]:
        """Split text into rows of fields, honouring double-quoted fields"""
        rows: List[List[str]] = []
        row: List[str] = []
        field: List[str] = []
        in_quotes = False
        i = 0
        length = len(text)

        while i < length:
            c = text[i]
            if in_quotes:
                if c == '"':
                    if i + 1 < length and text[i + 1] == '"':
                        field.append('"')
                        i += 2
                        continue
                    in_quotes = False
                else:
                    field.append(c)
                i += 1
                continue

            if c == '"':
                in_quotes = True
            elif c == delimiter:
                row.append("".join(field))
                field = []
            elif c == "\n":
                row.append("".join(field))
                rows.append(row)
                row = []
                field = []
            elif c != "\r":
                field.append(c)
            i += 1

        if field or row:
            row.append("".join(field))
            rows.append(row)
        return rows

    @staticmethod
    def normalize_header(header: str) -> str:
        return _WHITESPACE.sub("_", (header or "").strip().lower())

    @staticmethod
    def parse_amount(raw: Optional[str]) -> Optional[Decimal]:
        """Parse a money cell, keeping only digits, sign and decimal point"""
        cleaned = _AMOUNT_NOISE.sub("", raw or "")
        if not cleaned:
            return None
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return None
        return value if value.is_finite() else None

    @staticmethod
    def detect_mapping(headers: List[str]) -> Optional[ColumnMapping]:
        """Recognise columns from normalized headers, or None when incomplete"""

        def find(candidates: Iterable[str]) -> Optional[str]:
            wanted = set(candidates)
            return next((h for h in headers if h in wanted), None)

        date = find(DATE_HEADERS)
        description = find(DESCRIPTION_HEADERS)
        if not date or not description:
            return None

        amount = None
        signed = find(AMOUNT_HEADERS)
        debit, credit = find(DEBIT_HEADERS), find(CREDIT_HEADERS)
        money_in, money_out = find(MONEY_IN_HEADERS), find(MONEY_OUT_HEADERS)
        if signed:
            amount = AmountColumn(amount=signed)
        elif debit and credit:
            amount = DebitCreditColumns(debit=debit, credit=credit)
        elif money_in and money_out:
            amount = MoneyInOutColumns(money_in=money_in, money_out=money_out, fee=find(FEE_HEADERS))
        if amount is None:
            return None

        optional = OptionalColumns(**{name: find(candidates) for name, candidates in OPTIONAL_HEADERS.items()})
        return ColumnMapping(date=date, description=description, amount=amount, optional=optional)

    @staticmethod
    def _read_rows(data: bytes) -> Tuple[List[List[str]], str, str]:
        text, encoding = StatementParser.decode(data)
        delimiter = StatementParser.detect_delimiter(text)
        rows = [
            row for row in StatementParser.tokenize(text, delimiter)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            raise EmptyStatementError()
        return rows, encoding, delimiter

    @staticmethod
    def preview(data: bytes, sample_size: int = 5) -> StatementPreview:
        """Sniff a file without importing it, so a manual mapping can be built"""
        rows, encoding, delimiter = StatementParser._read_rows(data)
        headers = [h.strip() for h in rows[0]]
        normalized = [StatementParser.normalize_header(h) for h in headers]
        return StatementPreview(
            encoding=encoding,
            delimiter=delimiter,
            headers=headers,
            normalized_headers=normalized,
            detected_mapping=StatementParser.detect_mapping(normalized),
            sample_rows=rows[1:1 + sample_size],
        )

    @staticmethod
    def parse(data: bytes, mapping: Optional[ColumnMapping] = None) -> ParsedStatement:
        """Parse a statement, auto-detecting columns unless a mapping is given"""
        rows, encoding, delimiter = StatementParser._read_rows(data)
        headers = [StatementParser.normalize_header(h) for h in rows[0]]

        if mapping is None:
            mapping = StatementParser.detect_mapping(headers)
            if mapping is None:
                logger.warning("statement_columns_undetected", headers=headers)
                raise ColumnDetectionError(headers)

        columns = StatementParser._resolve_columns(mapping, headers)
        transactions: List[Transaction] = []
        skipped = 0
        for row in rows[1:]:
            transaction = StatementParser._build_transaction(row, mapping, columns)
            if transaction is None:
                skipped += 1
                continue
            transactions.append(transaction)

        logger.info(
            "statement_parsed",
            encoding=encoding,
            delimiter=delimiter,
            strategy=mapping.amount.strategy,
            kept=len(transactions),
            skipped=skipped,
        )
        if not transactions:
            raise NoRowsParsedError()

        return ParsedStatement(
            transactions=transactions,
            mapping=mapping,
            encoding=encoding,
            delimiter=delimiter,
            skipped_rows=skipped,
        )

    @staticmethod
    def _resolve_columns(mapping: ColumnMapping, headers: List[str]) -> Dict[str, int]:
        """Map each logical field to its column index in the header row"""
        index: Dict[str, int] = {}
        for i, header in enumerate(headers):
            index.setdefault(header, i)

        wanted: Dict[str, Optional[str]] = {
            "date": mapping.date,
            "description": mapping.description,
        }
        wanted.update(mapping.amount.model_dump(exclude={"strategy"}))
        wanted.update(mapping.optional.model_dump())

        columns: Dict[str, int] = {}
        for field, column in wanted.items():
            if not column:
                continue
            normalized = StatementParser.normalize_header(column)
            if normalized not in index:
                raise ColumnMappingError(column, field)
            columns[field] = index[normalized]
        return columns

    @staticmethod
    def _build_transaction(
        row: List[str],
        mapping: ColumnMapping,
        columns: Dict[str, int],
    ) -> Optional[Transaction]:
        def cell(field: str) -> str:
            idx = columns.get(field)
            if idx is None or idx >= len(row):
                return ""
            return row[idx].strip()

        def optional_cell(field: str) -> Optional[str]:
            return cell(field) or None

        date = cell("date")
        description = cell("description")
        if not date or not description:
            return None

        money_in = money_out = fee = None
        strategy = mapping.amount
        if isinstance(strategy, AmountColumn):
            raw = cell("amount")
            # A cell with no digits or sign at all reads as zero
            amount = StatementParser.parse_amount(raw) if _AMOUNT_NOISE.sub("", raw) else Decimal("0")
        elif isinstance(strategy, DebitCreditColumns):
            debit = StatementParser.parse_amount(cell("debit"))
            credit = StatementParser.parse_amount(cell("credit"))
            amount = (credit or Decimal("0")) - (debit or Decimal("0"))
            money_in, money_out = credit, debit
        else:
            money_in = StatementParser.parse_amount(cell("money_in"))
            money_out = StatementParser.parse_amount(cell("money_out"))
            fee = StatementParser.parse_amount(cell("fee"))
            amount = (money_in or Decimal("0")) - (money_out or Decimal("0")) - (fee or Decimal("0"))

        if amount is None:
            return None

        currency = cell("currency").upper() or settings.default_currency
        return Transaction(
            id=str(uuid.uuid4()),
            date=date,
            description=description,
            amount=amount,
            currency=currency,
            nr=optional_cell("nr"),
            account=optional_cell("account"),
            posting_date=optional_cell("posting_date"),
            transaction_date=optional_cell("transaction_date"),
            original_description=optional_cell("original_description"),
            parent_category=optional_cell("parent_category"),
            statement_category=optional_cell("statement_category"),
            money_in=money_in,
            money_out=money_out,
            fee=fee,
            balance=StatementParser.parse_amount(cell("balance")),
        )
