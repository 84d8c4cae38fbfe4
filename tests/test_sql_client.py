"""Unit tests for the SQL Server feedback store."""
import pytest
from unittest.mock import Mock, MagicMock, patch
from datetime import datetime, timezone
from src.data_access.sql_client import SQLClient
from src.config.settings import Settings
from src.models.schemas import FeedbackNotFoundError, FeedbackQuery, FeedbackRecord


@pytest.fixture
def mock_config():
    """Create a mock configuration."""
    config = Mock(spec=Settings)
    config.sql_server_host = "test-server"
    config.sql_server_port = 1433
    config.sql_server_username = "test-user"
    config.sql_server_password = "test-pass"
    config.sql_server_database = "test-db"
    return config


def _create_mock_connection():
    """Helper to create mock connection."""
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value.__enter__ = Mock(return_value=cursor)
    conn.cursor.return_value.__exit__ = Mock(return_value=False)
    return conn, cursor


def _row(**overrides):
    row = {
        'feedback_id': 'fb001',
        'reference_number': 'FB2025000001',
        'customer_name': 'Ada Obi',
        'rating': 2,
        'comment': 'ATM swallowed my card at the branch',
        'service_type': 'ATM Service',
        'branch': 'Ikeja',
        'status': 'pending',
        'created_at': datetime(2025, 1, 10, 9, 30),
        'updated_at': None,
        'sentiment': 'negative',
        'sentiment_score': 30,
        'categories': 'transaction_issues,technical_issues',
        'emotions': 'frustrated',
        'urgency': 'high',
        'actionable_insights': 'Branch operations should retrieve the card.',
        'confidence_score': 85,
        'analysis_timestamp': datetime(2025, 1, 10, 9, 31),
        'ai_model': 'gpt-4o',
    }
    row.update(overrides)
    return row


class TestSQLClient:
    """Test SQLClient methods."""

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_connect(self, mock_connect, mock_config):
        client = SQLClient(mock_config)
        client.connect()

        mock_connect.assert_called_once_with(
            server="test-server",
            port=1433,
            user="test-user",
            password="test-pass",
            database="test-db"
        )

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_close(self, mock_connect, mock_config):
        conn, _ = _create_mock_connection()
        mock_connect.return_value = conn

        client = SQLClient(mock_config)
        client.connect()
        client.close()

        conn.close.assert_called_once()
        assert client.conn is None

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_initialize_schema(self, mock_connect, mock_config):
        """Test creating the feedback table."""
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn

        client = SQLClient(mock_config)
        client.initialize_schema()

        mock_connect.assert_called_once()
        sql = cursor.execute.call_args[0][0]
        assert "CREATE TABLE customer_insights.customer_feedback" in sql
        assert "customer_feedback_urgency_idx" in sql
        conn.commit.assert_called_once()

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_insert_feedback(self, mock_connect, mock_config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        record = FeedbackRecord(
            feedback_id="fb001",
            rating=4,
            comment="Quick transfer on the app",
            created_at=datetime(2025, 1, 10, tzinfo=timezone.utc),
            categories=["technical_issues", "transaction_issues"],
        )

        client = SQLClient(mock_config)
        client.insert_feedback(record)

        sql, params = cursor.execute.call_args[0]
        assert "INSERT INTO customer_insights.customer_feedback" in sql
        assert params[0] == "fb001"
        assert params[7] == "pending"
        assert params[12] == "technical_issues,transaction_issues"
        assert params[13] is None
        conn.commit.assert_called_once()

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_get_feedback_by_id(self, mock_connect, mock_config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        cursor.fetchone.return_value = _row()

        client = SQLClient(mock_config)
        record = client.get_feedback_by_id("fb001")

        conn.cursor.assert_called_with(as_dict=True)
        assert record.feedback_id == "fb001"
        assert record.categories == ["transaction_issues", "technical_issues"]
        assert record.emotions == ["frustrated"]
        assert record.created_at.tzinfo == timezone.utc

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_get_feedback_by_id_not_found(self, mock_connect, mock_config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        cursor.fetchone.return_value = None

        client = SQLClient(mock_config)
        with pytest.raises(FeedbackNotFoundError):
            client.get_feedback_by_id("missing")

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_query_feedback(self, mock_connect, mock_config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        cursor.fetchall.return_value = [
            _row(),
            _row(feedback_id='fb002', sentiment=None, sentiment_score=None, categories=None,
                 emotions=None, urgency=None, status=None),
        ]

        client = SQLClient(mock_config)
        records = client.query_feedback(FeedbackQuery(limit=50, service_type="ATM Service"))

        sql, params = cursor.execute.call_args[0]
        assert "SELECT TOP 50" in sql
        assert "ORDER BY created_at DESC" in sql
        assert params == ("closed", "ATM Service")
        assert len(records) == 2
        assert records[1].categories == []
        assert records[1].urgency == "low"
        assert records[1].status == "pending"

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_update_analysis(self, mock_connect, mock_config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        cursor.rowcount = 1
        record = SQLClient._from_row(_row())

        client = SQLClient(mock_config)
        client.update_analysis("fb001", record)

        sql, params = cursor.execute.call_args[0]
        assert "UPDATE customer_insights.customer_feedback" in sql
        assert params[0] == "negative"
        assert params[2] == "transaction_issues,technical_issues"
        assert params[-1] == "fb001"
        conn.commit.assert_called_once()

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_update_analysis_not_found(self, mock_connect, mock_config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        cursor.rowcount = 0

        client = SQLClient(mock_config)
        with pytest.raises(FeedbackNotFoundError):
            client.update_analysis("missing", SQLClient._from_row(_row()))
        conn.commit.assert_not_called()

    @patch('src.data_access.sql_client.pymssql.connect')
    def test_update_status(self, mock_connect, mock_config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        cursor.rowcount = 1

        client = SQLClient(mock_config)
        client.update_status("fb001", "resolved")

        params = cursor.execute.call_args[0][1]
        assert params[0] == "resolved"
        assert params[2] == "fb001"
        conn.commit.assert_called_once()


class TestBuildWhere:
    """Test FeedbackQuery translation."""

    def test_default_excludes_closed(self):
        where, params = SQLClient.build_where(FeedbackQuery())
        assert where == "1=1 AND status NOT IN (%s)"
        assert params == ["closed"]

    def test_no_status_exclusion(self):
        where, params = SQLClient.build_where(FeedbackQuery(exclude_statuses=[], unanalyzed_only=True))
        assert where == "1=1 AND sentiment IS NULL"
        assert params == []

    def test_all_filters(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        end = datetime(2025, 1, 31, tzinfo=timezone.utc)
        where, params = SQLClient.build_where(FeedbackQuery(
            start_date=start,
            end_date=end,
            branch="Ikeja",
            urgency="high",
            category="wait_time",
            require_sentiment=True,
            require_branch=True,
            require_insights=True,
        ))

        assert "created_at >= %s" in where
        assert "created_at <= %s" in where
        assert "branch = %s" in where
        assert "urgency = %s" in where
        assert "LIKE %s" in where
        assert "sentiment IS NOT NULL" in where
        assert "LTRIM(RTRIM(branch)) <> ''" in where
        assert "LTRIM(RTRIM(actionable_insights)) <> ''" in where
        assert params == ["closed", start, end, "Ikeja", "high", "%,wait_time,%"]
