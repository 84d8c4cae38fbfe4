"""Unit tests for the dashboard report command."""
import argparse
import json
import pytest
from unittest.mock import Mock, patch
from datetime import datetime, timezone
from src.config.settings import Settings
from src.models.reports import ReportFilter
from src.pipelines.dashboard import build_filter, run


@pytest.fixture
def mock_config():
    """Create a mock configuration."""
    config = Mock(spec=Settings)
    config.report_default_days = 30
    return config


def _args(**overrides):
    values = dict(
        start_date=None,
        end_date=None,
        days=None,
        period=None,
        service_type=None,
        branch=None,
        urgency=None,
        category=None,
        min_count=None,
        limit=None,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


class TestBuildFilter:
    """Test command-line filter parsing."""

    def test_defaults(self):
        filters = build_filter(_args())
        assert filters == ReportFilter()
        assert filters.period == "daily"
        assert filters.limit == 10

    def test_dates(self):
        filters = build_filter(_args(start_date="2025-01-01", end_date="2025-01-31"))
        assert filters.start_date == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert filters.end_date == datetime(2025, 1, 31, 23, 59, 59, tzinfo=timezone.utc)

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            build_filter(_args(start_date="01/02/2025"))

    def test_options(self):
        filters = build_filter(_args(days=7, period="weekly", service_type="Mobile App",
                                     urgency="high", min_count=3, limit=5))
        assert filters.days == 7
        assert filters.period == "weekly"
        assert filters.service_type == "Mobile App"
        assert filters.urgency == "high"
        assert filters.min_count == 3
        assert filters.limit == 5


class TestRun:
    """Test report execution."""

    @patch('src.pipelines.dashboard.SQLClient')
    def test_run_prints_camel_case_json(self, mock_sql_class, mock_config):
        mock_client = Mock()
        mock_client.query_feedback.return_value = []
        mock_sql_class.return_value = mock_client

        output = run(mock_config, "pulse", ReportFilter(days=7))

        mock_client.connect.assert_called_once()
        mock_client.close.assert_called_once()
        report = json.loads(output)
        assert report["period"] == "7 days"
        assert report["totalFeedback"] == 0
        assert "performanceRating" in report

    @patch('src.pipelines.dashboard.SQLClient')
    def test_run_closes_on_error(self, mock_sql_class, mock_config):
        mock_client = Mock()
        mock_client.query_feedback.side_effect = Exception("Connection failed")
        mock_sql_class.return_value = mock_client

        with pytest.raises(Exception, match="Connection failed"):
            run(mock_config, "urgency", ReportFilter())

        mock_client.close.assert_called_once()
