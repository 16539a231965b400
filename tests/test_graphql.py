from fastapi import status


def graphql(client, query, variables=None):
    response = client.post("/graphql", json={"query": query, "variables": variables or {}})
    assert response.status_code == status.HTTP_200_OK
    return response.json()


def test_transactions_query(client, company_id, seed_transactions, make_transaction):
    seed_transactions([
        make_transaction("-10.00", id="t1", description="Coffee"),
        make_transaction("20.00", id="t2", description="Sale", matched_kind="invoice", matched_id="i1"),
    ])
    query = """
        query ($companyId: String!, $status: String) {
            transactions(companyId: $companyId, status: $status) { id status direction matchedId }
        }
    """
    data = graphql(client, query, {"companyId": company_id})["data"]["transactions"]
    assert data == [
        {"id": "t1", "status": "unmatched", "direction": "money_out", "matchedId": None},
        {"id": "t2", "status": "matched", "direction": "money_in", "matchedId": "i1"},
    ]

    matched = graphql(client, query, {"companyId": company_id, "status": "matched"})["data"]["transactions"]
    assert [t["id"] for t in matched] == ["t2"]


def test_link_unlink_mutations(client, company_id, seed_transactions, make_transaction):
    seed_transactions([make_transaction("-10.00", id="t1")])
    link = """
        mutation ($companyId: String!) {
            link(companyId: $companyId, transactionId: "t1", kind: "receipt", documentId: "r1") {
                matchedKind matchedId status
            }
        }
    """
    data = graphql(client, link, {"companyId": company_id})["data"]["link"]
    assert data == {"matchedKind": "receipt", "matchedId": "r1", "status": "matched"}

    unlink = """
        mutation ($companyId: String!) {
            unlink(companyId: $companyId, transactionId: "t1") { status }
        }
    """
    assert graphql(client, unlink, {"companyId": company_id})["data"]["unlink"]["status"] == "unmatched"


def test_flip_direction_and_unallocate_mutations(client, company_id, seed_transactions, make_transaction):
    seed_transactions([make_transaction("-10.00", id="t1", allocated=True, allocation_category="Fuel")])

    flip = """
        mutation ($companyId: String!) {
            flipDirection(companyId: $companyId, transactionId: "t1") { amount direction allocated }
        }
    """
    data = graphql(client, flip, {"companyId": company_id})["data"]["flipDirection"]
    assert data["direction"] == "money_in"
    assert data["allocated"] is False

    unallocate = """
        mutation ($companyId: String!) {
            unallocate(companyId: $companyId, transactionId: "t1") { allocationCategory }
        }
    """
    assert graphql(client, unallocate, {"companyId": company_id})["data"]["unallocate"]["allocationCategory"] is None


def test_link_errors_are_reported(client, company_id, seed_transactions, make_transaction):
    seed_transactions([
        make_transaction("-10.00", id="t1", matched_kind="receipt", matched_id="r1"),
        make_transaction("-10.00", id="t2"),
    ])
    link = """
        mutation ($companyId: String!) {
            link(companyId: $companyId, transactionId: "t2", kind: "receipt", documentId: "r1") { id }
        }
    """
    result = graphql(client, link, {"companyId": company_id})
    assert result["data"] is None
    assert "already matched" in result["errors"][0]["message"]


def test_batch_stats_query(client, company_id):
    query = """
        query ($companyId: String!) { batchStats(companyId: $companyId) { id action } }
    """
    assert graphql(client, query, {"companyId": company_id})["data"]["batchStats"] == []
