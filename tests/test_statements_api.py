import json
from decimal import Decimal
from fastapi import status


def upload(statement_bytes, name="statement.csv"):
    return {"file": (name, statement_bytes, "text/csv")}


def test_preview_statement(client, company_id, statement_csv):
    response = client.post(f"/api/companies/{company_id}/statements/preview", files=upload(statement_csv))
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["encoding"] == "utf-8"
    assert data["delimiter"] == ","
    assert data["headers"] == ["Date", "Description", "Amount", "Currency"]
    assert data["detected_mapping"]["amount"] == {"strategy": "amount", "amount": "amount"}


def test_import_statement(client, company_id, statement_csv):
    """Test importing a statement stores its transactions in file order"""
    response = client.post(f"/api/companies/{company_id}/statements/import", files=upload(statement_csv))
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["imported_rows"] == 3
    assert data["skipped_rows"] == 0
    assert data["replayed"] is False

    listed = client.get(f"/api/companies/{company_id}/bank-transactions").json()
    assert [t["description"] for t in listed] == ["Coffee Shop", "Client Payment ACME", "Stationery, Paper & Co"]
    assert [Decimal(t["amount"]) for t in listed] == [Decimal("-45.50"), Decimal("1200"), Decimal("-99.99")]


def test_import_replaces_previous_collection(client, company_id, statement_csv):
    client.post(f"/api/companies/{company_id}/statements/import", files=upload(statement_csv))
    second = b"Date,Description,Amount\n2024-04-01,Rent,-8000.00\n"
    client.post(f"/api/companies/{company_id}/statements/import", files=upload(second))

    listed = client.get(f"/api/companies/{company_id}/bank-transactions").json()
    assert [t["description"] for t in listed] == ["Rent"]


def test_import_is_scoped_to_company(client, company_id, statement_csv):
    client.post(f"/api/companies/{company_id}/statements/import", files=upload(statement_csv))
    other = client.get("/api/companies/someone-else/bank-transactions").json()
    assert other == []


def test_import_with_manual_mapping(client, company_id):
    statement = b"When,What,Paid,Received\n2024-03-15,Shop,25.00,\n2024-03-16,Refund,,5.00\n"
    mapping = {
        "date": "When",
        "description": "What",
        "amount": {"strategy": "debit_credit", "debit": "Paid", "credit": "Received"},
    }
    response = client.post(
        f"/api/companies/{company_id}/statements/import",
        files=upload(statement),
        data={"mapping": json.dumps(mapping)},
    )
    assert response.status_code == status.HTTP_201_CREATED
    amounts = [Decimal(t["amount"]) for t in response.json()["transactions"]]
    assert amounts == [Decimal("-25.00"), Decimal("5.00")]


def test_import_with_malformed_mapping(client, company_id, statement_csv):
    response = client.post(
        f"/api/companies/{company_id}/statements/import",
        files=upload(statement_csv),
        data={"mapping": json.dumps({"date": "Date"})},
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_import_rejects_spreadsheet(client, company_id):
    response = client.post(
        f"/api/companies/{company_id}/statements/import",
        files=upload(b"PK\x03\x04binary", name="statement.xlsx"),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "spreadsheet" in response.json()["detail"].lower()


def test_import_undetected_columns_returns_headers(client, company_id):
    response = client.post(
        f"/api/companies/{company_id}/statements/import",
        files=upload(b"When,What,How Much\n2024-03-15,Shop,-1.00\n"),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["detail"]["headers"] == ["when", "what", "how_much"]


def test_failed_import_keeps_existing_transactions(client, company_id, statement_csv):
    client.post(f"/api/companies/{company_id}/statements/import", files=upload(statement_csv))
    response = client.post(
        f"/api/companies/{company_id}/statements/import",
        files=upload(b"Date,Description,Amount\n2024-03-15,Shop,1.2.3\n"),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "No rows parsed. Check the file format."
    assert len(client.get(f"/api/companies/{company_id}/bank-transactions").json()) == 3


def test_import_idempotency(client, company_id, statement_csv):
    """Test that replaying an import with the same key returns the stored result"""
    headers = {"Idempotency-Key": "statement-2024-03"}
    first = client.post(
        f"/api/companies/{company_id}/statements/import", files=upload(statement_csv), headers=headers
    )
    assert first.status_code == status.HTTP_201_CREATED

    # Work done after the import must survive a replay
    txn_id = first.json()["transactions"][0]["id"]
    client.post(f"/api/companies/{company_id}/bank-transactions/{txn_id}/unallocate")
    client.post(
        f"/api/companies/{company_id}/bank-transactions/{txn_id}/link",
        json={"kind": "receipt", "document_id": "r1"},
    )

    second = client.post(
        f"/api/companies/{company_id}/statements/import", files=upload(statement_csv), headers=headers
    )
    assert second.status_code == status.HTTP_201_CREATED
    assert second.json()["replayed"] is True
    assert [t["id"] for t in second.json()["transactions"]] == [t["id"] for t in first.json()["transactions"]]

    listed = client.get(f"/api/companies/{company_id}/bank-transactions").json()
    assert listed[0]["matched_id"] == "r1"


def test_import_idempotency_conflict(client, company_id, statement_csv):
    headers = {"Idempotency-Key": "statement-2024-03"}
    client.post(f"/api/companies/{company_id}/statements/import", files=upload(statement_csv), headers=headers)

    response = client.post(
        f"/api/companies/{company_id}/statements/import",
        files=upload(b"Date,Description,Amount\n2024-04-01,Rent,-8000.00\n"),
        headers=headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert "Idempotency key" in response.json()["detail"]
