#!/usr/bin/env python3
"""
Test suite for sublingual/budget.py — daily OMDb quota with UTC day semantics
"""

import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sublingual.budget import BudgetGovernor, BudgetStatus


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / '.sublingual_api_state'


@pytest.fixture
def budget(state_path, clock):
    return BudgetGovernor(state_path, clock=clock)


class TestCounting:

    def test_missing_state_is_zero(self, budget):
        assert budget.current_count() == 0
        assert budget.check_limit() is BudgetStatus.ALLOWED

    def test_record_call_is_monotonic(self, budget):
        counts = [budget.record_call() for _ in range(5)]
        assert counts == [1, 2, 3, 4, 5]
        assert budget.current_count() == 5

    def test_state_file_format(self, budget, state_path):
        """Two lines: ISO date, count"""
        budget.record_call()
        budget.record_call()
        assert state_path.read_text().splitlines() == ['2024-03-10', '2']

    def test_survives_restart(self, budget, state_path, clock):
        budget.record_call()
        again = BudgetGovernor(state_path, clock=clock)
        assert again.current_count() == 1
        assert again.record_call() == 2

    def test_remaining(self, budget):
        for _ in range(10):
            budget.record_call()
        assert budget.remaining() == 490


class TestCorruptState:
    """Unreadable state reads as zero instead of failing"""

    @pytest.mark.parametrize('content', ['', 'garbage', '2024-03-10\n', '2024-03-10\nabc\n',
                                         'not-a-date\n5\n', '2024-03-10\n-4\n'])
    def test_corrupt_reads_zero(self, budget, state_path, content):
        state_path.write_text(content)
        assert budget.current_count() == 0

    def test_corrupt_is_overwritten(self, budget, state_path):
        state_path.write_text('garbage')
        assert budget.record_call() == 1
        assert state_path.read_text().splitlines() == ['2024-03-10', '1']


class TestDayRollover:
    """The quota day is the UTC calendar day"""

    def test_stale_date_reads_zero(self, budget, state_path):
        state_path.write_text('2024-03-09\n480\n')
        assert budget.current_count() == 0
        assert budget.check_limit() is BudgetStatus.ALLOWED

    def test_rollover_at_utc_midnight(self, budget, clock):
        clock.now = datetime(2024, 3, 10, 23, 59, 0, tzinfo=timezone.utc)
        for _ in range(3):
            budget.record_call()
        clock.advance(120)
        assert budget.current_count() == 0
        assert budget.record_call() == 1

    def test_local_offset_does_not_shift_the_day(self, budget, state_path, clock):
        """01:00 at UTC+2 is still the previous UTC day"""
        state_path.write_text('2024-03-10\n7\n')
        clock.now = datetime(2024, 3, 11, 1, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert budget.current_count() == 7


class TestLimit:

    def test_blocked_at_budget_limit(self, budget, state_path):
        state_path.write_text('2024-03-10\n489\n')
        assert not budget.is_blocked()
        state_path.write_text('2024-03-10\n490\n')
        assert budget.is_blocked()
        assert budget.check_limit() is BudgetStatus.BLOCKED

    def test_custom_limit(self, state_path, clock):
        budget = BudgetGovernor(state_path, budget_limit=2, clock=clock)
        budget.record_call()
        assert not budget.is_blocked()
        budget.record_call()
        assert budget.is_blocked()

    def test_check_does_not_count(self, budget, state_path):
        state_path.write_text('2024-03-10\n490\n')
        budget.check_limit()
        budget.is_blocked()
        assert budget.current_count() == 490


class TestThresholdWarnings:

    def test_warns_at_thresholds(self, budget, state_path, caplog):
        state_path.write_text('2024-03-10\n449\n')
        with caplog.at_level('WARNING'):
            budget.record_call()
        assert 'Approaching API limit: 450/500' in caplog.text

    def test_no_warning_between_thresholds(self, budget, state_path, caplog):
        state_path.write_text('2024-03-10\n450\n')
        with caplog.at_level('WARNING'):
            budget.record_call()
        assert caplog.text == ''


class TestResetTime:

    def test_seconds_until_reset(self, budget, clock):
        clock.now = datetime(2024, 3, 10, 23, 0, 0, tzinfo=timezone.utc)
        assert budget.seconds_until_reset() == 3600 + 2

    def test_seconds_until_reset_just_after_midnight(self, budget, clock):
        clock.now = datetime(2024, 3, 10, 0, 0, 0, tzinfo=timezone.utc)
        assert budget.seconds_until_reset() == 86400 + 2
