"""
Ledger query tests: grouping, filters, both pagination modes and the
read-through cache.
"""

from datetime import datetime, timedelta

import pytest

from salesledger.errors import ValidationError
from salesledger.extensions import db, query_cache
from salesledger.models import Sale
from salesledger.services import ledger_query_service, sales_service
from salesledger.services.pagination import PageRequest, decode_cursor, encode_cursor


def record(actor, *lines):
    return sales_service.create_transaction(actor, list(lines))["transaction_id"]


def backdate(transaction_id: str, when: datetime) -> None:
    db.session.query(Sale).filter_by(transaction_id=transaction_id).update(
        {"created_at": when}, synchronize_session=False
    )
    db.session.commit()


class TestListing:

    def test_aggregation_identity(self, db_session, actor_a, product_a, product_a2):
        record(actor_a, (product_a.id, 2), (product_a2.id, 3))

        result = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=15))
        txn = result["transactions"][0]

        assert txn["total_amount"] == "119.95"       # 59.98 + 59.97
        assert txn["total_items"] == 5
        assert txn["products_count"] == 2
        assert txn["total_cost"] == "54.00"          # 2 * 15.00 + 3 * 8.00
        assert txn["total_utility"] == "65.95"
        assert txn["user_name"] == actor_a.display_name
        assert {p["product_name"] for p in txn["products"]} == {"Widget", "Gadget"}

    def test_sorted_newest_first(self, db_session, actor_a, product_a):
        old = record(actor_a, (product_a.id, 1))
        new = record(actor_a, (product_a.id, 2))
        backdate(old, datetime(2025, 1, 1, 9, 0))
        backdate(new, datetime(2025, 6, 1, 9, 0))

        result = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=15))
        assert [t["transaction_id"] for t in result["transactions"]] == [new, old]
        assert result["transactions"][0]["transaction_date"] == "2025-06-01T09:00:00Z"

    def test_date_range_filter(self, db_session, actor_a, product_a):
        jan = record(actor_a, (product_a.id, 1))
        feb = record(actor_a, (product_a.id, 1))
        backdate(jan, datetime(2025, 1, 15, 23, 30))
        backdate(feb, datetime(2025, 2, 10, 8, 0))

        result = ledger_query_service.list_transactions(
            actor_a,
            PageRequest(per_page=15),
            start_date=datetime(2025, 1, 1),
            end_date=datetime.combine(datetime(2025, 1, 15).date(), datetime.max.time()),
        )
        assert [t["transaction_id"] for t in result["transactions"]] == [jan]

    def test_product_filter_keeps_whole_transactions(self, db_session, actor_a, product_a, product_a2):
        both = record(actor_a, (product_a.id, 1), (product_a2.id, 1))
        record(actor_a, (product_a.id, 4))

        result = ledger_query_service.list_transactions(
            actor_a, PageRequest(per_page=15), product_id=product_a2.id,
        )
        assert [t["transaction_id"] for t in result["transactions"]] == [both]
        assert result["transactions"][0]["products_count"] == 2

    def test_empty_ledger(self, db_session, actor_a):
        result = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=15))
        assert result["transactions"] == []
        assert result["count"] == 0
        assert result["has_more"] is False
        assert result["next_cursor"] is None


class TestPagination:

    def _seed(self, actor, product, n):
        ids = []
        base = datetime(2025, 3, 1, 12, 0)
        for i in range(n):
            txn = record(actor, (product.id, 1))
            backdate(txn, base + timedelta(minutes=i))
            ids.append(txn)
        return list(reversed(ids))  # newest first

    def test_paginates_grouped_transactions_not_lines(self, db_session, actor_a, product_a, product_a2):
        for _ in range(3):
            record(actor_a, (product_a.id, 1), (product_a2.id, 1))

        result = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=2, page=1))
        assert result["count"] == 2
        assert all(t["products_count"] == 2 for t in result["transactions"])
        assert result["pagination"]["total"] == 3

    def test_offset_mode(self, db_session, actor_a, product_a):
        expected = self._seed(actor_a, product_a, 5)

        page2 = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=2, page=2))

        assert [t["transaction_id"] for t in page2["transactions"]] == expected[2:4]
        assert page2["pagination"] == {"current_page": 2, "last_page": 3, "per_page": 2, "total": 5}
        assert "next_cursor" not in page2

    def test_cursor_mode_walks_all_pages(self, db_session, actor_a, product_a):
        expected = self._seed(actor_a, product_a, 5)

        seen = []
        cursor = None
        while True:
            page = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=2, cursor=cursor))
            assert "pagination" not in page
            seen.extend(t["transaction_id"] for t in page["transactions"])
            if not page["has_more"]:
                assert page["next_cursor"] is None
                break
            cursor = page["next_cursor"]

        assert seen == expected

    def test_prev_cursor(self, db_session, actor_a, product_a):
        self._seed(actor_a, product_a, 3)
        first = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=2))
        second = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=2, cursor=first["next_cursor"]))

        assert first["prev_cursor"] is None
        assert decode_cursor(second["prev_cursor"]) == 0

    def test_cursor_round_trip_and_rejects_garbage(self):
        assert decode_cursor(encode_cursor(30)) == 30
        assert decode_cursor(None) == 0
        with pytest.raises(ValidationError):
            decode_cursor("!!not-base64!!")
        with pytest.raises(ValidationError):
            decode_cursor(encode_cursor(-1))


class TestCaching:

    def test_identical_query_within_ttl_is_served_from_cache(self, db_session, actor_a, product_a):
        record(actor_a, (product_a.id, 1))
        first = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=15))

        record(actor_a, (product_a.id, 2))
        second = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=15))

        # Stale within the TTL window, byte for byte
        assert second == first
        assert second["count"] == 1

    def test_different_signature_is_computed_fresh(self, db_session, actor_a, product_a):
        record(actor_a, (product_a.id, 1))
        ledger_query_service.list_transactions(actor_a, PageRequest(per_page=15))

        record(actor_a, (product_a.id, 2))
        other = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=14))
        assert other["count"] == 2

    def test_tenants_never_share_entries(self, db_session, actor_a, actor_b, product_a, product_b):
        record(actor_a, (product_a.id, 1))
        record(actor_b, (product_b.id, 1))

        a = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=15))
        b = ledger_query_service.list_transactions(actor_b, PageRequest(per_page=15))

        assert a["transactions"][0]["transaction_id"] != b["transactions"][0]["transaction_id"]

    def test_broken_cache_falls_back_to_computation(self, db_session, actor_a, product_a, caplog):
        class Exploding:
            def get(self, key):
                raise ConnectionError("cache down")

            def set(self, key, payload, ttl):
                raise ConnectionError("cache down")

            def clear(self):
                pass

        record(actor_a, (product_a.id, 1))
        original = query_cache.backend
        query_cache.backend = Exploding()
        try:
            result = ledger_query_service.list_transactions(actor_a, PageRequest(per_page=15))
        finally:
            query_cache.backend = original

        assert result["count"] == 1
        assert any("Cache read failed" in r.getMessage() for r in caplog.records)

    def test_single_transaction_reads_are_never_cached(self, db_session, actor_a, product_a):
        txn = record(actor_a, (product_a.id, 1))
        before = ledger_query_service.get_transaction(actor_a, txn)
        sales_service.update_line(actor_a, txn, product_a.id, 4)
        after = ledger_query_service.get_transaction(actor_a, txn)

        assert before["total_items"] == 1
        assert after["total_items"] == 4
