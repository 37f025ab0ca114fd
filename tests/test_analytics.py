from datetime import date
from decimal import Decimal

from analytics import generate_financial_snapshot
from expenses import Expense
from members import Member
from splitter import ExpenseSplit, SplitStatus

TODAY = date(2026, 10, 18)
MEMBERS = [Member("alice", "Alice"), Member("bob", "Bob"), Member("carol", "Carol")]


def split(member_id, amount, status):
    return ExpenseSplit(member_id, Decimal(amount), status)


def test_snapshot_of_the_current_month():
    expenses = [
        Expense("E002", "P1", "Water", "90.00", "2026-10-05", "utilities", "alice", "equal", splits=[
            split("alice", "30.00", SplitStatus.PAID),
            split("bob", "30.00", SplitStatus.OWED),
            split("carol", "30.00", SplitStatus.OWED),
        ]),
        Expense("E001", "P1", "Roof", "60.00", "2026-09-20", "repairs", "bob", "equal", splits=[
            split("alice", "30.00", SplitStatus.OWED),
            split("bob", "30.00", SplitStatus.PAID),
        ]),
    ]

    snapshot = generate_financial_snapshot(MEMBERS, expenses, TODAY)

    assert snapshot["month_name"] == "October 2026"
    assert snapshot["total_expenses_this_month"] == 90.0
    assert snapshot["category_breakdown"] == {"utilities": 90.0}
    assert snapshot["payer_totals"] == {"alice": 90.0}
    assert snapshot["outstanding_by_member"] == {"bob": 30.0, "carol": 30.0, "alice": 30.0}
    assert snapshot["warnings"] == []


def test_member_owing_most_outstanding_money_is_flagged():
    expenses = [
        {
            "amount": 100,
            "date": "2026-10-01",
            "category": "maintenance",
            "payer_id": "alice",
            "splits": [
                {"member_id": "alice", "amount": 20, "status": "paid"},
                {"member_id": "bob", "amount": 80, "status": "owed"},
            ],
        },
        {
            "amount": 40,
            "date": "2026-10-02",
            "category": "supplies",
            "payer_id": "bob",
            "splits": [
                {"member_id": "bob", "amount": 20, "status": "paid"},
                {"member_id": "carol", "amount": 20, "status": "owed"},
            ],
        },
    ]

    snapshot = generate_financial_snapshot(MEMBERS, expenses, TODAY)

    assert snapshot["total_expenses_this_month"] == 140.0
    assert snapshot["payer_totals"] == {"alice": 100.0, "bob": 40.0}
    assert len(snapshot["warnings"]) == 1
    assert snapshot["warnings"][0].startswith("Warning: Bob owes 80.00%")
    assert "$80.00 of $100.00" in snapshot["warnings"][0]


def test_empty_property():
    snapshot = generate_financial_snapshot([], [], TODAY)
    assert snapshot["total_expenses_this_month"] == 0.0
    assert snapshot["category_breakdown"] == {}
    assert snapshot["outstanding_by_member"] == {}
    assert snapshot["warnings"] == []


def test_warning_for_former_member_uses_member_id():
    expenses = [
        Expense("E001", "P1", "Boiler", "100.00", "2026-10-03", "repairs", "alice", "fixed", splits=[
            split("alice", "10.00", SplitStatus.PAID),
            split("dave", "90.00", SplitStatus.OWED),
        ]),
    ]

    snapshot = generate_financial_snapshot(MEMBERS, expenses, TODAY)

    assert snapshot["warnings"][0].startswith("Warning: dave owes 100.00%")
