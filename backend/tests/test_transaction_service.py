from decimal import Decimal

import pytest

from retail_pos.errors import (
    InsufficientStock,
    InvalidInput,
    NotFound,
    PaymentMismatch,
    StorageFailure,
)
from retail_pos.models import Product, Transaction, TransactionItem, PaymentRecord
from retail_pos.services import catalog_service, transaction_service
from retail_pos.services.transaction_service import (
    MIXED,
    CartLine,
    PaymentEntry,
    SettlementMethod,
    commit_transaction,
    generate_transaction_number,
    get_transaction_details,
    list_transactions,
)


def cash(amount):
    return PaymentEntry(payment_method="cash", amount=Decimal(amount))


def stock_of(session, product_id):
    return session.get(Product, product_id).stock_quantity


# =============================================================================
# HAPPY PATH
# =============================================================================

def test_commit_computes_totals_and_decrements_stock(db_session, product_a):
    txn = commit_transaction(
        [CartLine(product_id=product_a.id, quantity=2)],
        tax_amount=Decimal("2.00"),
        payments=[cash("22.00")],
    )

    assert txn.total_amount == Decimal("20.00")
    assert txn.tax_amount == Decimal("2.00")
    assert txn.final_amount == Decimal("22.00")
    assert txn.payment_method == "cash"
    assert txn.status == "completed"
    assert txn.transaction_number.startswith("TXN-")
    assert stock_of(db_session, product_a.id) == 48

    item = db_session.query(TransactionItem).filter_by(transaction_id=txn.id).one()
    assert item.unit_price_cents == 1000
    assert item.total_price_cents == 2000
    assert db_session.query(PaymentRecord).filter_by(transaction_id=txn.id).count() == 1


def test_variant_price_is_used(db_session, product_a, large_variant):
    txn = commit_transaction(
        [CartLine(product_id=product_a.id, price_variant_id=large_variant.id, quantity=2)],
        payments=[cash("25.00")],
    )
    item = txn.items[0]
    assert item.unit_price == Decimal("12.50")
    assert item.price_variant_id == large_variant.id


def test_line_and_order_discounts(db_session, product_a, product_b):
    txn = commit_transaction(
        [
            CartLine(product_id=product_a.id, quantity=3, discount_amount=Decimal("5.00")),
            CartLine(product_id=product_b.id, quantity=2),
        ],
        tax_amount=Decimal("1.50"),
        discount_amount=Decimal("2.00"),
        payments=[cash("33.50")],
    )
    # (30.00 - 5.00) + 9.00 = 34.00; 34.00 + 1.50 - 2.00 = 33.50
    assert txn.total_amount == Decimal("34.00")
    assert txn.final_amount == Decimal("33.50")
    assert [i.total_price_cents for i in txn.items] == [2500, 900]


def test_mixed_payments(db_session, product_a):
    txn = commit_transaction(
        [CartLine(product_id=product_a.id, quantity=2)],
        payments=[
            PaymentEntry(payment_method="card", amount=Decimal("12.00"), reference_number="AUTH-1"),
            cash("8.00"),
        ],
    )
    assert txn.payment_method == "mixed"
    assert [p.payment_method for p in txn.payments] == ["card", "cash"]
    assert txn.payments[0].reference_number == "AUTH-1"
    assert sum(p.amount for p in txn.payments) == Decimal("20.00")


def test_payment_within_tolerance(db_session, product_a):
    txn = commit_transaction(
        [CartLine(product_id=product_a.id, quantity=1)],
        payments=[cash("10.01")],
    )
    assert txn.final_amount == Decimal("10.00")


def test_same_product_on_two_lines(db_session, product_b):
    commit_transaction(
        [
            CartLine(product_id=product_b.id, quantity=2),
            CartLine(product_id=product_b.id, quantity=3),
        ],
        payments=[cash("22.50")],
    )
    assert stock_of(db_session, product_b.id) == 0


def test_unit_price_is_a_snapshot(db_session, product_a):
    txn = commit_transaction(
        [CartLine(product_id=product_a.id, quantity=1)],
        payments=[cash("10.00")],
    )
    catalog_service.update_product(product_a.id, {"base_price_cents": 1500})

    item = db_session.query(TransactionItem).filter_by(transaction_id=txn.id).one()
    assert item.unit_price == Decimal("10.00")
    assert db_session.get(Transaction, txn.id).final_amount == Decimal("10.00")


def test_line_discount_above_subtotal_goes_negative(db_session, product_a, product_b):
    # Line discounts are not capped at the line subtotal; the line total goes negative.
    txn = commit_transaction(
        [
            CartLine(product_id=product_a.id, quantity=1, discount_amount=Decimal("12.00")),
            CartLine(product_id=product_b.id, quantity=2),
        ],
        payments=[cash("7.00")],
    )
    assert txn.items[0].total_price == Decimal("-2.00")
    assert txn.total_amount == Decimal("7.00")


# =============================================================================
# FAILURES LEAVE NOTHING BEHIND
# =============================================================================

def test_payment_mismatch(db_session, product_a):
    with pytest.raises(PaymentMismatch) as exc:
        commit_transaction(
            [CartLine(product_id=product_a.id, quantity=1)],
            payments=[cash("5.00")],
        )

    assert exc.value.details == {"payment_total": "5.00", "final_amount": "10.00"}
    assert stock_of(db_session, product_a.id) == 50
    assert db_session.query(Transaction).count() == 0
    assert db_session.query(PaymentRecord).count() == 0


def test_payment_outside_tolerance(db_session, product_a):
    with pytest.raises(PaymentMismatch):
        commit_transaction(
            [CartLine(product_id=product_a.id, quantity=1)],
            payments=[cash("10.02")],
        )


def test_insufficient_stock(db_session, product_b):
    with pytest.raises(InsufficientStock) as exc:
        commit_transaction(
            [CartLine(product_id=product_b.id, quantity=6)],
            payments=[cash("27.00")],
        )
    assert exc.value.details["on_hand"] == 5
    assert exc.value.details["requested_quantity"] == 6
    assert stock_of(db_session, product_b.id) == 5


def test_later_line_failure_rolls_back_earlier_decrements(db_session, product_a, product_b):
    with pytest.raises(InsufficientStock):
        commit_transaction(
            [
                CartLine(product_id=product_a.id, quantity=4),
                CartLine(product_id=product_b.id, quantity=9),
            ],
            payments=[cash("80.50")],
        )

    assert stock_of(db_session, product_a.id) == 50
    assert stock_of(db_session, product_b.id) == 5
    assert db_session.query(Transaction).count() == 0
    assert db_session.query(TransactionItem).count() == 0


def test_same_product_lines_share_the_stock(db_session, product_b):
    with pytest.raises(InsufficientStock):
        commit_transaction(
            [
                CartLine(product_id=product_b.id, quantity=3),
                CartLine(product_id=product_b.id, quantity=3),
            ],
            payments=[cash("27.00")],
        )
    assert stock_of(db_session, product_b.id) == 5


def test_unknown_product(db_session):
    with pytest.raises(NotFound):
        commit_transaction([CartLine(product_id=4242, quantity=1)], payments=[cash("1.00")])


def test_stale_variant(db_session, product_a):
    with pytest.raises(NotFound):
        commit_transaction(
            [CartLine(product_id=product_a.id, price_variant_id=777, quantity=1)],
            payments=[cash("10.00")],
        )
    assert stock_of(db_session, product_a.id) == 50


@pytest.mark.parametrize(
    "lines, payments, tax",
    [
        ([], [cash("1.00")], "0"),
        ([CartLine(product_id=1, quantity=1)], [], "0"),
        ([CartLine(product_id=1, quantity=0)], [cash("1.00")], "0"),
        ([CartLine(product_id=1, quantity=-2)], [cash("1.00")], "0"),
        ([CartLine(product_id=1, quantity=1)], [PaymentEntry("cheque", Decimal("1.00"))], "0"),
        ([CartLine(product_id=1, quantity=1)], [cash("-1.00")], "0"),
        ([CartLine(product_id=1, quantity=1)], [cash("1.00")], "-0.50"),
        ([CartLine(product_id=1, quantity=1, discount_amount=Decimal("-1"))], [cash("1.00")], "0"),
    ],
)
def test_invalid_requests(db_session, lines, payments, tax):
    with pytest.raises(InvalidInput):
        commit_transaction(lines, tax_amount=Decimal(tax), payments=payments)
    assert db_session.query(Transaction).count() == 0


# =============================================================================
# TRANSACTION NUMBERS
# =============================================================================

def test_generated_number_format():
    number = generate_transaction_number()
    prefix, millis, suffix = number.split("-")
    assert prefix == "TXN"
    assert millis.isdigit()
    assert len(suffix) == 9
    assert suffix.isalnum() and suffix == suffix.lower()


def test_number_collision_is_retried(db_session, product_a, monkeypatch, caplog):
    first = commit_transaction([CartLine(product_id=product_a.id, quantity=1)], payments=[cash("10.00")])
    taken = first.transaction_number

    numbers = iter([taken, "TXN-1-fresh0001"])
    monkeypatch.setattr(transaction_service, "generate_transaction_number", lambda: next(numbers))

    second = commit_transaction([CartLine(product_id=product_a.id, quantity=2)], payments=[cash("20.00")])

    assert second.transaction_number == "TXN-1-fresh0001"
    assert stock_of(db_session, product_a.id) == 47
    assert db_session.query(Transaction).count() == 2
    assert db_session.query(TransactionItem).count() == 2
    assert any("Retrying" in r.getMessage() for r in caplog.records)


def test_number_collision_gives_up(db_session, product_a, monkeypatch):
    first = commit_transaction([CartLine(product_id=product_a.id, quantity=1)], payments=[cash("10.00")])
    taken = first.transaction_number
    monkeypatch.setattr(transaction_service, "generate_transaction_number", lambda: taken)

    with pytest.raises(StorageFailure):
        commit_transaction([CartLine(product_id=product_a.id, quantity=1)], payments=[cash("10.00")])

    assert stock_of(db_session, product_a.id) == 49
    assert db_session.query(Transaction).count() == 1


# =============================================================================
# VALUE OBJECTS
# =============================================================================

def test_settlement_method():
    assert SettlementMethod.from_payments([cash("1")]).label == "cash"
    assert SettlementMethod.from_payments([cash("1"), cash("2")]) is MIXED
    assert MIXED.is_mixed
    assert not SettlementMethod.single("card").is_mixed


def test_cart_line_from_payload():
    line = CartLine.from_payload({"product_id": 3, "quantity": 2, "discount_amount": "1.5"})
    assert line == CartLine(product_id=3, quantity=2, price_variant_id=None, discount_amount=Decimal("1.50"))

    with pytest.raises(InvalidInput):
        CartLine.from_payload({"product_id": "3", "quantity": 2})
    with pytest.raises(InvalidInput):
        CartLine.from_payload({"product_id": 3, "quantity": 1.5})


def test_payment_entry_from_payload():
    entry = PaymentEntry.from_payload({"payment_method": "card", "amount": 22.1, "reference_number": " "})
    assert entry.amount == Decimal("22.10")
    assert entry.reference_number is None

    with pytest.raises(InvalidInput):
        PaymentEntry.from_payload({"payment_method": "cash", "amount": "abc"})


# =============================================================================
# READS
# =============================================================================

def test_list_transactions_newest_first(db_session, product_a):
    first = commit_transaction([CartLine(product_id=product_a.id, quantity=1)], payments=[cash("10.00")])
    second = commit_transaction([CartLine(product_id=product_a.id, quantity=1)], payments=[cash("10.00")])

    ids = [t.id for t in list_transactions()]
    assert ids == [second.id, first.id]
    assert [t.id for t in list_transactions(limit=1, offset=1)] == [first.id]
    assert list_transactions(start_date="2000-01-01", end_date="2000-01-02") == []


def test_list_transactions_rejects_bad_paging(db_session):
    with pytest.raises(InvalidInput):
        list_transactions(limit=0)
    with pytest.raises(InvalidInput):
        list_transactions(offset=-1)
    with pytest.raises(InvalidInput):
        list_transactions(start_date="yesterday")


def test_transaction_details(db_session, product_a, large_variant):
    txn = commit_transaction(
        [CartLine(product_id=product_a.id, price_variant_id=large_variant.id, quantity=1)],
        payments=[cash("12.50")],
    )

    details = get_transaction_details(txn.id)
    assert details["final_amount"] == "12.50"
    assert details["items"][0]["product_name"] == "Product A"
    assert details["items"][0]["variant_name"] == "Large"
    assert details["payments"][0]["amount"] == "12.50"

    assert get_transaction_details(999) is None


# =============================================================================
# OUT-OF-RANGE INPUT
# =============================================================================

def test_oversized_payment_amount_is_invalid():
    with pytest.raises(InvalidInput):
        PaymentEntry.from_payload({"payment_method": "cash", "amount": "1e30"})
    with pytest.raises(InvalidInput):
        PaymentEntry.from_payload({"payment_method": "cash", "amount": "10.005"})


def test_oversized_quantity_is_invalid(db_session, product_a):
    with pytest.raises(InvalidInput):
        commit_transaction(
            [CartLine(product_id=product_a.id, quantity=10**17)],
            payments=[cash("10.00")],
        )
    assert stock_of(db_session, product_a.id) == 50
    assert db_session.query(Transaction).count() == 0


def test_totals_beyond_supported_range_are_invalid(db_session, product_a):
    # 2,000,000,000 x 10.00 passes the per-line quantity bound but not the amount bound
    with pytest.raises(InvalidInput):
        commit_transaction(
            [CartLine(product_id=product_a.id, quantity=2_000_000_000)],
            payments=[cash("99999999.99")],
        )
    assert stock_of(db_session, product_a.id) == 50
    assert db_session.query(Transaction).count() == 0


def test_out_of_range_product_id_is_invalid(db_session):
    with pytest.raises(InvalidInput):
        commit_transaction([CartLine(product_id=10**20, quantity=1)], payments=[cash("1.00")])
    with pytest.raises(InvalidInput):
        CartLine.from_payload({"product_id": 10**20, "quantity": 1})
