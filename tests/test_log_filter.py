"""
Unit tests for log classification and filtering.
"""
import pytest

from log_relay.filtering.log_filter import LogFilter
from log_relay.filtering.log_types import EXCLUDED_TYPES, LOG_TYPES, describe, level_for
from log_relay.shared.config import FilterSettings

from fakes import make_entry


class TestLogTypes:
    """Test the classification table."""

    def test_table_is_read_only(self):
        """Test the table cannot be modified at runtime."""
        with pytest.raises(TypeError):
            LOG_TYPES['new'] = LOG_TYPES['s']

    def test_levels(self):
        assert level_for('s') == 1
        assert level_for('w') == 2
        assert level_for('f') == 3
        assert level_for('limit_wc') == 4
        assert level_for('cs') == 0
        assert level_for('sapi') is None
        assert level_for('not-a-code') is None
        assert level_for(None) is None

    def test_excluded_types_are_classified(self):
        """Test noise codes exist in the table without a level."""
        for code in EXCLUDED_TYPES:
            assert code in LOG_TYPES
            assert LOG_TYPES[code].level is None

    def test_describe(self):
        assert describe('fp') == 'Failed Login (wrong password)'
        assert describe('custom') == 'custom'


class TestLogFilter:
    """Test the three filter stages."""

    def test_composition(self):
        """Test excluded, low-level and unclassified entries with min_level 3."""
        entries = [
            make_entry('a', 'sapi'),
            make_entry('b', 's', level=1),
            make_entry('c', 'brand_new_code'),
        ]

        kept = LogFilter(min_level=3).apply(entries)

        assert [e.id for e in kept] == ['c']

    def test_noise_is_dropped_even_when_allow_listed(self):
        entries = [make_entry('1', 'fapi'), make_entry('2', 'f', level=3)]

        kept = LogFilter(allowed_types=['fapi', 'f']).apply(entries)

        assert [e.id for e in kept] == ['2']

    def test_level_falls_back_to_table(self):
        """Test entries without a resolved level use the table."""
        entries = [make_entry('1', 'w'), make_entry('2', 'cs')]

        kept = LogFilter(min_level=1).apply(entries)

        assert [e.id for e in kept] == ['1']

    def test_allow_list_drops_untyped_entries(self):
        entries = [make_entry('1', None), make_entry('2', 'ss', level=1), make_entry('3', 'f', level=3)]

        assert [e.id for e in LogFilter(allowed_types=['ss']).apply(entries)] == ['2']
        assert [e.id for e in LogFilter().apply(entries)] == ['1', '2', '3']

    def test_empty_allow_list_is_ignored(self):
        entries = [make_entry('1', 's', level=1)]

        assert LogFilter(allowed_types=[]).apply(entries) == entries

    def test_order_is_preserved(self):
        entries = [make_entry(str(i), 'f', level=3) for i in range(10)]

        assert LogFilter(min_level=2).apply(entries) == entries

    def test_from_settings(self):
        settings = FilterSettings(min_level=2, log_types=" f, fp ,,s ")

        log_filter = LogFilter.from_settings(settings)

        assert log_filter.min_level == 2
        assert log_filter.allowed_types == frozenset({'f', 'fp', 's'})
