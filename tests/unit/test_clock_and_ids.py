"""Unit tests for the injectable clock and id generators."""

from datetime import date, datetime, timezone
from uuid import UUID

from studio_kernel.domain.clock import DeterministicClock, SystemClock
from studio_kernel.domain.ids import SequentialIdGenerator, UUID4Generator


class TestDeterministicClock:

    def test_default_time(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
        assert clock.today() == date(2024, 3, 15)

    def test_stable_until_advanced(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()
        before = clock.now()
        assert (clock.tick() - before).total_seconds() == 1

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(3600)
        clock.set_time(datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert clock.today() == date(2025, 1, 1)


class TestSystemClock:

    def test_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None


class TestIdGenerators:

    def test_sequential_is_reproducible(self):
        first = SequentialIdGenerator()
        second = SequentialIdGenerator()
        assert [first.new_id() for _ in range(3)] == [second.new_id() for _ in range(3)]

    def test_sequential_values(self):
        ids = SequentialIdGenerator(start=10)
        assert ids.new_id() == UUID("00000000-0000-4000-8000-000000000010")
        assert ids.new_id() == UUID("00000000-0000-4000-8000-000000000011")

    def test_uuid4_unique(self):
        ids = UUID4Generator()
        assert ids.new_id() != ids.new_id()
