"""Transaction id generation and pre-insert uniqueness checks."""

import re

import pytest

from salesledger.errors import ConflictError
from salesledger.services import identifier_service, sales_service

TXN_PATTERN = re.compile(r"^TXN-\d{13,}-\d+-\d{6}$")


class TestGeneration:

    def test_format(self):
        txn = identifier_service.generate_transaction_id(42)
        assert TXN_PATTERN.match(txn)
        assert txn.split("-")[2] == "42"

    def test_time_component_strictly_increases(self):
        stamps = [int(identifier_service.generate_transaction_id(1).split("-")[1]) for _ in range(200)]
        assert all(b > a for a, b in zip(stamps, stamps[1:]))

    def test_ids_are_distinct(self):
        ids = {identifier_service.generate_transaction_id(1) for _ in range(500)}
        assert len(ids) == 500


class TestReservation:

    def test_taken_candidate_is_skipped(self, db_session, monkeypatch, actor_a, product_a):
        taken = sales_service.create_transaction(actor_a, [(product_a.id, 1)])["transaction_id"]
        candidates = iter([taken, "TXN-1-1-000002"])
        monkeypatch.setattr(identifier_service, "generate_transaction_id", lambda user_id: next(candidates))

        assert identifier_service.reserve_transaction_id(actor_a.id) == "TXN-1-1-000002"

    def test_exhaustion_raises_conflict(self, db_session, monkeypatch, actor_a, product_a):
        taken = sales_service.create_transaction(actor_a, [(product_a.id, 1)])["transaction_id"]
        monkeypatch.setattr(identifier_service, "generate_transaction_id", lambda user_id: taken)

        with pytest.raises(ConflictError):
            identifier_service.reserve_transaction_id(actor_a.id, max_attempts=3)

    def test_existence_check_is_global(self, db_session, actor_a, actor_b, product_b):
        taken = sales_service.create_transaction(actor_b, [(product_b.id, 1)])["transaction_id"]
        assert identifier_service.transaction_id_exists(taken)
        assert not identifier_service.transaction_id_exists("TXN-0-0-000000")
