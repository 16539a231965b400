import pytest
from decimal import Decimal

from ledgerly_recon.core.config import settings
from ledgerly_recon.core.exceptions import (
    ColumnDetectionError,
    ColumnMappingError,
    EmptyStatementError,
    NoRowsParsedError,
    SpreadsheetFileError,
)
from ledgerly_recon.schemas.bank_transaction import Transaction
from ledgerly_recon.schemas.statement import (
    AmountColumn,
    ColumnMapping,
    DebitCreditColumns,
    MoneyInOutColumns,
)
from ledgerly_recon.services.statement_parser import StatementParser


def test_parse_comma_statement(statement_csv):
    """Test parsing a comma-delimited statement with auto-detected columns"""
    parsed = StatementParser.parse(statement_csv)

    assert parsed.encoding == "utf-8"
    assert parsed.delimiter == ","
    assert parsed.mapping.amount.strategy == "amount"
    assert [t.amount for t in parsed.transactions] == [Decimal("-45.50"), Decimal("1200.00"), Decimal("-99.99")]
    assert parsed.transactions[2].description == "Stationery, Paper & Co"
    assert all(t.currency == "ZAR" for t in parsed.transactions)
    assert parsed.skipped_rows == 0


def test_transaction_ids_are_unique(statement_csv):
    parsed = StatementParser.parse(statement_csv)
    ids = [t.id for t in parsed.transactions]
    assert len(set(ids)) == len(ids)


def test_missing_currency_uses_default():
    data = b"Date,Description,Amount\n2024-03-15,Coffee,-4.50\n"
    parsed = StatementParser.parse(data)
    assert parsed.transactions[0].currency == "USD"


def test_semicolon_delimiter():
    data = b"Date;Description;Amount\n15/03/2024;Bakery;-12.50\n"
    parsed = StatementParser.parse(data)
    assert parsed.delimiter == ";"
    assert parsed.transactions[0].amount == Decimal("-12.50")
    assert parsed.transactions[0].date == "15/03/2024"


def test_tab_delimiter():
    data = b"Date\tDescription\tAmount\n2024-03-15\tFuel, regular\t-650.00\n"
    parsed = StatementParser.parse(data)
    assert parsed.delimiter == "\t"
    assert parsed.transactions[0].description == "Fuel, regular"


def test_delimiter_is_chosen_from_header_line_only():
    """Test that commas in data rows do not outvote header semicolons"""
    text = "Date;Description;Amount\n2024-03-15;a,b,c,d,e;-1.00\n"
    assert StatementParser.detect_delimiter(text) == ";"


def test_delimiter_tie_falls_back_to_comma():
    assert StatementParser.detect_delimiter("a;b,c") == ","


def test_rejects_spreadsheet_archive():
    """Test that a ZIP-based spreadsheet is rejected with a helpful message"""
    with pytest.raises(SpreadsheetFileError) as exc_info:
        StatementParser.parse(b"PK\x03\x04\x14\x00\x06\x00rest-of-xlsx")
    assert "spreadsheet" in str(exc_info.value).lower()


@pytest.mark.parametrize("encoding", ["utf-16", "utf-16-le", "utf-16-be"])
def test_utf16_statements(encoding):
    """Test UTF-16 exports with and without a byte-order mark"""
    text = "Date,Description,Amount\n2024-03-15,Caf\u00e9 Central,-30.00\n"
    parsed = StatementParser.parse(text.encode(encoding))

    assert parsed.encoding.startswith("utf-16")
    assert parsed.transactions[0].description == "Caf\u00e9 Central"
    assert parsed.transactions[0].amount == Decimal("-30.00")


def test_big_endian_without_bom_is_detected():
    text = "Date,Description,Amount\n2024-03-15,Shop,-1.00\n"
    parsed = StatementParser.parse(text.encode("utf-16-be"))
    assert parsed.encoding == "utf-16-be"


def test_utf8_bom_is_stripped():
    data = "\ufeffDate,Description,Amount\n2024-03-15,Shop,-1.00\n".encode("utf-8")
    parsed = StatementParser.parse(data)
    assert parsed.mapping.date == "date"
    assert len(parsed.transactions) == 1


def test_invalid_utf8_is_replaced_not_rejected():
    data = b"Date,Description,Amount\n2024-03-15,Caf\xe9,-3.00\n"
    parsed = StatementParser.parse(data)
    assert parsed.transactions[0].description == "Caf\ufffd"


def test_debit_credit_strategy():
    data = (
        b"Date,Details,Debit,Credit\n"
        b"2024-03-15,Rent,500.00,\n"
        b"2024-03-16,Refund,,50\n"
    )
    parsed = StatementParser.parse(data)

    assert parsed.mapping.amount.strategy == "debit_credit"
    rent, refund = parsed.transactions
    assert rent.amount == Decimal("-500.00")
    assert rent.money_out == Decimal("500.00")
    assert rent.money_in is None
    assert refund.amount == Decimal("50")
    assert refund.money_in == Decimal("50")


def test_money_in_out_strategy_subtracts_fee():
    data = b"Date,Description,Money In,Money Out,Fee\n2024-03-15,Deposit,100,0,2\n"
    parsed = StatementParser.parse(data)

    assert parsed.mapping.amount.strategy == "money_in_out"
    assert parsed.mapping.amount.fee == "fee"
    assert parsed.transactions[0].amount == Decimal("98")
    assert parsed.transactions[0].fee == Decimal("2")


def test_single_amount_column_takes_priority():
    headers = ["date", "description", "debit", "credit", "amount"]
    mapping = StatementParser.detect_mapping(headers)
    assert mapping.amount == AmountColumn(amount="amount")


def test_first_matching_header_column_wins():
    """Test that the leftmost column naming any synonym is used"""
    headers = ["memo", "posted_date", "description", "date", "value"]
    mapping = StatementParser.detect_mapping(headers)
    assert mapping.date == "posted_date"
    assert mapping.description == "memo"
    assert mapping.amount.amount == "value"


def test_earlier_date_column_is_parsed():
    data = b"Transaction Date,Description,Amount,Date\n2024-03-15,Shop,-1.00,2024-03-20\n"
    parsed = StatementParser.parse(data)
    assert parsed.mapping.date == "transaction_date"
    assert parsed.transactions[0].date == "2024-03-15"


def test_posting_date_column_before_value_date():
    mapping = StatementParser.detect_mapping(["posting_date", "value_date", "description", "amount"])
    assert mapping.date == "posting_date"


def test_optional_columns_are_detected():
    data = (
        b"Nr,Account,Date,Posting Date,Description,Original Description,Category,Amount,Balance\n"
        b"1,Cheque,2024-03-15,2024-03-16,POS,POS PURCHASE WOOLWORTHS,Groceries,-200.00,1800.00\n"
    )
    parsed = StatementParser.parse(data)
    t = parsed.transactions[0]

    assert t.nr == "1"
    assert t.account == "Cheque"
    assert t.posting_date == "2024-03-16"
    assert t.original_description == "POS PURCHASE WOOLWORTHS"
    assert t.statement_category == "Groceries"
    assert t.balance == Decimal("1800.00")


def test_undetectable_columns_report_headers():
    data = b"When,What,How Much\n2024-03-15,Shop,-1.00\n"
    with pytest.raises(ColumnDetectionError) as exc_info:
        StatementParser.parse(data)
    assert exc_info.value.headers == ["when", "what", "how_much"]


def test_manual_mapping_for_unrecognised_headers():
    data = b"When,What,Paid,Received\n2024-03-15,Shop,25.00,\n"
    mapping = ColumnMapping(
        date="When",
        description="What",
        amount=DebitCreditColumns(debit="Paid", credit="Received"),
    )
    parsed = StatementParser.parse(data, mapping)
    assert parsed.transactions[0].amount == Decimal("-25.00")


def test_manual_mapping_matches_detected_mapping(statement_csv):
    detected = StatementParser.parse(statement_csv)
    manual = StatementParser.parse(statement_csv, detected.mapping)

    assert [(t.date, t.description, t.amount, t.currency) for t in manual.transactions] == [
        (t.date, t.description, t.amount, t.currency) for t in detected.transactions
    ]


def test_reparsing_same_bytes_gives_same_records():
    data = (
        b"Nr,Date,Description,Debit,Credit,Currency,Balance\n"
        b"1,2024-03-15,Coffee Shop,45.50,,zar,954.50\n"
        b"2,16/03/2024,\"ACME, Ltd\",,1200.00,ZAR,2154.50\n"
    )
    first = StatementParser.parse(data)
    second = StatementParser.parse(data)

    assert [t.model_dump(exclude={"id"}) for t in first.transactions] == [
        t.model_dump(exclude={"id"}) for t in second.transactions
    ]
    assert first.mapping == second.mapping
    assert first.skipped_rows == second.skipped_rows


def test_empty_amount_cell_is_zero():
    data = b"Date,Description,Amount\n2024-03-15,Bank fee reversal,\n2024-03-16,Shop,-1.00\n"
    parsed = StatementParser.parse(data)
    assert [(t.description, t.amount) for t in parsed.transactions] == [
        ("Bank fee reversal", Decimal("0")),
        ("Shop", Decimal("-1.00")),
    ]
    assert parsed.skipped_rows == 0


def test_delimiter_skips_leading_blank_lines():
    data = b"\n\r\nDate;Description;Amount\n2024-03-15;Bakery;-12.50\n"
    parsed = StatementParser.parse(data)
    assert parsed.delimiter == ";"
    assert parsed.transactions[0].description == "Bakery"


def test_mapping_naming_missing_column():
    data = b"Date,Description,Amount\n2024-03-15,Shop,-1.00\n"
    mapping = ColumnMapping(
        date="Date",
        description="Description",
        amount=MoneyInOutColumns(money_in="In", money_out="Out"),
    )
    with pytest.raises(ColumnMappingError) as exc_info:
        StatementParser.parse(data, mapping)
    assert exc_info.value.column == "In"


def test_invalid_rows_are_skipped():
    data = (
        b"Date,Description,Amount\n"
        b"2024-03-15,Shop,-1.00\n"
        b",Missing date,-2.00\n"
        b"2024-03-16,,-3.00\n"
        b"2024-03-17,Bad amount,1.2.3\n"
        b"\n"
        b",,\n"
        b"2024-03-18,Ok,4.00\n"
    )
    parsed = StatementParser.parse(data)
    assert [t.description for t in parsed.transactions] == ["Shop", "Ok"]
    assert parsed.skipped_rows == 3


def test_empty_file():
    with pytest.raises(EmptyStatementError):
        StatementParser.parse(b"")


def test_header_only_file():
    with pytest.raises(EmptyStatementError):
        StatementParser.parse(b"Date,Description,Amount\n\n")


def test_no_rows_parsed():
    with pytest.raises(NoRowsParsedError):
        StatementParser.parse(b"Date,Description,Amount\n2024-03-15,Shop,-\n")


@pytest.mark.parametrize("raw,expected", [
    ("R 1,234.56", Decimal("1234.56")),
    ("-45.50", Decimal("-45.50")),
    ("+7", Decimal("7")),
    ("$ 0.99", Decimal("0.99")),
    ("", None),
    ("abc", None),
    ("1.2.3", None),
])
def test_parse_amount(raw, expected):
    assert StatementParser.parse_amount(raw) == expected


def test_tokenize_quoted_fields():
    text = 'a,"b ""quoted"", c",d\r\n"multi\nline",e,\n'
    assert StatementParser.tokenize(text, ",") == [
        ["a", 'b "quoted", c', "d"],
        ["multi\nline", "e", ""],
    ]


def test_tokenize_without_trailing_newline():
    assert StatementParser.tokenize("a,b\nc,d", ",") == [["a", "b"], ["c", "d"]]


def test_normalize_header():
    assert StatementParser.normalize_header("  Money   In ") == "money_in"


def test_preview(statement_csv):
    preview = StatementParser.preview(statement_csv, sample_size=2)

    assert preview.headers == ["Date", "Description", "Amount", "Currency"]
    assert preview.normalized_headers == ["date", "description", "amount", "currency"]
    assert preview.detected_mapping.optional.currency == "currency"
    assert len(preview.sample_rows) == 2


def test_preview_without_detectable_columns():
    preview = StatementParser.preview(b"When,What\n1,2\n")
    assert preview.detected_mapping is None


def test_transaction_currency_defaults_to_setting(monkeypatch):
    monkeypatch.setattr(settings, "default_currency", "ZAR")
    transaction = Transaction(id="t1", date="2024-03-15", description="Shop", amount=Decimal("-1"))
    assert transaction.currency == "ZAR"
