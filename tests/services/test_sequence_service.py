"""SequenceService: locked, gap-free named counters."""

from inventory_kernel.services.sequence_service import SequenceService


class TestSequenceService:

    def test_first_value_is_one(self, session, db_tables):
        service = SequenceService(session)
        assert service.current_value("store_request:t:2024-01-01") is None
        assert service.next_value("store_request:t:2024-01-01") == 1
        assert service.current_value("store_request:t:2024-01-01") == 1

    def test_values_strictly_increase(self, session, db_tables):
        service = SequenceService(session)
        values = [service.next_value("seq-a") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_names_are_independent(self, session, db_tables):
        service = SequenceService(session)
        service.next_value("seq-a")
        service.next_value("seq-a")
        assert service.next_value("seq-b") == 1

    def test_reset(self, session, db_tables):
        service = SequenceService(session)
        service.next_value("seq-a")
        service.reset("seq-a", 41)
        assert service.next_value("seq-a") == 42
        service.reset("seq-new", 9)
        assert service.next_value("seq-new") == 10
