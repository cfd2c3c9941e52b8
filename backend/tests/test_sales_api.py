"""
Sales API tests: request/response shapes and status codes for
/api/sales endpoints.
"""

import pytest

from conftest import make_product
from salesledger.extensions import db
from salesledger.models import Sale
from salesledger.services.pagination import encode_cursor
from salesledger.time_utils import utcnow


def checkout(client, headers, *lines):
    return client.post("/api/sales", headers=headers, json={
        "products": [{"product_id": pid, "quantity": qty} for pid, qty in lines],
    })


class TestCreateSale:

    def test_created_shape(self, client, headers_a, product_a):
        resp = checkout(client, headers_a, (product_a.id, 2))

        assert resp.status_code == 201
        body = resp.json
        assert body["transaction_id"].startswith("TXN-")
        assert body["summary"] == {
            "total_income": "59.98",
            "total_cost": "30.00",
            "total_utility": "29.98",
            "items_count": 1,
        }
        sale = body["sales"][0]
        assert sale["transaction_id"] == body["transaction_id"]
        assert sale["product_id"] == product_a.id
        assert sale["total"] == "59.98"

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({}, "products"),
            ({"products": []}, "products"),
            ({"products": "nope"}, "products"),
            ({"products": [{"product_id": 1, "quantity": 0}]}, "products.0.quantity"),
            ({"products": [{"product_id": 1, "quantity": 1.5}]}, "products.0.quantity"),
            ({"products": [{"product_id": "abc", "quantity": 1}]}, "products.0.product_id"),
            ({"products": [{"product_id": 2**70, "quantity": 1}]}, "products.0.product_id"),
            ({"products": [{"quantity": 1}]}, "products.0.product_id"),
            ({"products": [{"product_id": 1, "quantity": 1}, {"product_id": 1, "quantity": 2}]}, "products.1.product_id"),
        ],
    )
    def test_validation_errors_are_field_keyed(self, client, headers_a, payload, field):
        resp = client.post("/api/sales", headers=headers_a, json=payload)
        assert resp.status_code == 422
        assert resp.json["message"]
        assert field in resp.json["errors"]

    def test_foreign_product_is_forbidden(self, client, headers_a, product_a, product_b):
        resp = checkout(client, headers_a, (product_a.id, 1), (product_b.id, 1))
        assert resp.status_code == 403
        assert resp.json["message"]

        listing = client.get("/api/sales?page=1", headers=headers_a)
        assert listing.json["pagination"]["total"] == 0

    def test_non_json_body(self, client, headers_a):
        resp = client.post("/api/sales", headers=headers_a, data="not json", content_type="text/plain")
        assert resp.status_code == 422


class TestListSales:

    def test_cursor_mode_is_default(self, client, headers_a, product_a):
        checkout(client, headers_a, (product_a.id, 1))
        resp = client.get("/api/sales", headers=headers_a)

        assert resp.status_code == 200
        body = resp.json
        assert body["count"] == 1
        assert body["has_more"] is False
        assert body["next_cursor"] is None
        assert "pagination" not in body
        txn = body["transactions"][0]
        for key in ("transaction_id", "transaction_date", "total_amount", "total_utility",
                    "total_items", "products_count", "products", "user_name"):
            assert key in txn

    def test_page_mode(self, client, headers_a, product_a):
        checkout(client, headers_a, (product_a.id, 1))
        resp = client.get("/api/sales?page=1&per_page=10", headers=headers_a)

        assert resp.json["pagination"] == {"current_page": 1, "last_page": 1, "per_page": 10, "total": 1}
        assert "next_cursor" not in resp.json

    def test_per_page_is_capped(self, client, headers_a):
        resp = client.get("/api/sales?page=1&per_page=5000", headers=headers_a)
        assert resp.json["pagination"]["per_page"] == 100

    @pytest.mark.parametrize(
        "query,field",
        [
            ("cursor=garbage", "cursor"),
            ("start_date=yesterday", "start_date"),
            ("start_date=2025-02-01&end_date=2025-01-01", "end_date"),
            ("per_page=0", "per_page"),
            ("page=-1", "page"),
            ("product_id=abc", "product_id"),
            ("page=%C2%B2", "page"),
            ("per_page=%C2%B2", "per_page"),
            ("product_id=%C2%B2", "product_id"),
            ("product_id=99999999999999999999999", "product_id"),
            ("page=9223372036854775807", "page"),
            (f"cursor={encode_cursor(2**64)}", "cursor"),
        ],
    )
    def test_bad_query_parameters(self, client, headers_a, query, field):
        resp = client.get(f"/api/sales?{query}", headers=headers_a)
        assert resp.status_code == 422
        assert field in resp.json["errors"]

    def test_end_date_covers_whole_day(self, client, headers_a, product_a):
        checkout(client, headers_a, (product_a.id, 1))
        today = utcnow().date().isoformat()

        resp = client.get(f"/api/sales?start_date={today}&end_date={today}&page=1", headers=headers_a)
        assert resp.json["pagination"]["total"] == 1


class TestSingleTransaction:

    def test_get_update_delete_flow(self, client, headers_a, product_a, product_a2):
        created = checkout(client, headers_a, (product_a.id, 2), (product_a2.id, 1))
        txn = created.json["transaction_id"]

        shown = client.get(f"/api/sales/{txn}", headers=headers_a)
        assert shown.status_code == 200
        assert shown.json["transaction"]["total_amount"] == "79.97"

        updated = client.put(f"/api/sales/{txn}", headers=headers_a, json={"product_id": product_a.id, "quantity": 3})
        assert updated.status_code == 200
        by_product = {p["product_id"]: p for p in updated.json["transaction"]["products"]}
        assert by_product[product_a.id]["total"] == "89.97"
        assert by_product[product_a.id]["utility"] == "44.97"
        assert by_product[product_a.id]["unit_price"] == "29.99"

        deleted = client.delete(f"/api/sales/{txn}", headers=headers_a)
        assert deleted.status_code == 200
        summary = deleted.json["deleted_transaction"]
        assert summary["transaction_id"] == txn
        assert summary["total_amount"] == "109.96"
        assert summary["total_items"] == 4
        assert summary["products_count"] == 2
        assert "deleted_at" in summary

        assert client.get(f"/api/sales/{txn}", headers=headers_a).status_code == 404

    def test_unknown_transaction(self, client, headers_a):
        resp = client.get("/api/sales/TXN-0-0-000000", headers=headers_a)
        assert resp.status_code == 404
        assert resp.json == {"message": "Sale not found or you do not have permission to access it"}

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"quantity": 2}, "product_id"),
            ({"product_id": 1}, "quantity"),
            ({"product_id": 1, "quantity": 0}, "quantity"),
            ({"product_id": 2**70, "quantity": 1}, "product_id"),
        ],
    )
    def test_update_validation(self, client, headers_a, payload, field):
        resp = client.put("/api/sales/TXN-0-0-000000", headers=headers_a, json=payload)
        assert resp.status_code == 422
        assert field in resp.json["errors"]

    def test_update_line_not_in_transaction(self, client, headers_a, product_a, product_a2):
        txn = checkout(client, headers_a, (product_a.id, 1)).json["transaction_id"]
        resp = client.put(f"/api/sales/{txn}", headers=headers_a, json={"product_id": product_a2.id, "quantity": 2})
        assert resp.status_code == 404


class TestLineAmountBounds:
    """Line totals must fit Numeric(12, 2); oversized lines are a 422, never a storage error."""

    def test_create_rejects_total_beyond_column(self, client, headers_a, user_a):
        pricey = make_product(user_a, "Yacht", "99999999.99", "1.00")
        resp = checkout(client, headers_a, (pricey.id, 1_000_000))

        assert resp.status_code == 422
        assert "products.0.quantity" in resp.json["errors"]
        assert db.session.query(Sale).count() == 0

    def test_create_rejects_loss_beyond_column(self, client, headers_a, user_a, product_a):
        giveaway = make_product(user_a, "Giveaway", "0.00", "99999999.99")
        resp = checkout(client, headers_a, (product_a.id, 1), (giveaway.id, 1000))

        assert resp.status_code == 422
        assert list(resp.json["errors"]) == ["products.1.quantity"]
        assert db.session.query(Sale).count() == 0

    def test_update_rejects_total_beyond_column(self, client, headers_a, user_a):
        pricey = make_product(user_a, "Yacht", "99999999.99", "1.00")
        txn = checkout(client, headers_a, (pricey.id, 1)).json["transaction_id"]

        resp = client.put(f"/api/sales/{txn}", headers=headers_a, json={"product_id": pricey.id, "quantity": 1_000_000})

        assert resp.status_code == 422
        assert "quantity" in resp.json["errors"]
        line = db.session.query(Sale).filter_by(transaction_id=txn).one()
        assert line.quantity == 1
