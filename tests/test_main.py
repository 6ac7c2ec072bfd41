"""
Tests for the command-line entry point.
The db and update layers are patched where main.py imports them.
"""
from unittest.mock import MagicMock, patch

import pandas as pd
import psycopg2
import pytest
import requests

import main
from models.release import Release
from services.update_service import STATUS_FAILED, STATUS_UPDATED, UpdateResult


class TestStatementCommands:
    """Tests for scalar / query / update."""

    @patch("main.invoke_scalar")
    def test_scalar_prints_value(self, mock_scalar, capsys):
        mock_scalar.return_value = 3

        code = main.main(["scalar", "SELECT 1 + @n", "-p", "n=2", "-c", "dbname=test"])

        assert code == 0
        assert capsys.readouterr().out == "3\n"
        mock_scalar.assert_called_once_with(
            "SELECT 1 + @n",
            connection_string="dbname=test",
            parameters={"n": "2"},
            timeout=None,
            command_timeout=None,
        )

    @patch("main.invoke_scalar")
    def test_scalar_null_prints_empty_line(self, mock_scalar, capsys):
        mock_scalar.return_value = None

        assert main.main(["scalar", "SELECT NULL"]) == 0
        assert capsys.readouterr().out == "\n"

    @patch("main.invoke_query")
    def test_query_csv(self, mock_query, capsys):
        mock_query.return_value = pd.DataFrame({"id": [1, 2], "name": ["a", "b"]})

        code = main.main(["query", "SELECT id, name FROM t", "--format", "csv"])

        assert code == 0
        assert capsys.readouterr().out == "id,name\n1,a\n2,b\n"

    @patch("main.invoke_query")
    def test_query_json(self, mock_query, capsys):
        mock_query.return_value = pd.DataFrame({"id": [1], "name": ["a"]})

        main.main(["query", "SELECT id, name FROM t", "--format", "json"])

        assert capsys.readouterr().out == '[{"id":1,"name":"a"}]\n'

    @patch("main.invoke_update")
    def test_update_reads_sql_from_file(self, mock_update, tmp_path, capsys):
        script = tmp_path / "purge.sql"
        script.write_text("DELETE FROM t WHERE id = @id", encoding="utf-8")
        mock_update.return_value = 4

        code = main.main(["update", "-f", str(script), "-p", "id=7", "--command-timeout", "10"])

        assert code == 0
        assert capsys.readouterr().out == "4\n"
        args, kwargs = mock_update.call_args
        assert args == ("DELETE FROM t WHERE id = @id",)
        assert kwargs["parameters"] == {"id": "7"}
        assert kwargs["command_timeout"] == 10

    @patch("main.invoke_update")
    def test_database_error_exit_code(self, mock_update):
        mock_update.side_effect = psycopg2.OperationalError("server closed the connection")

        assert main.main(["update", "DELETE FROM t"]) == 1

    def test_param_without_value_is_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            main.main(["scalar", "SELECT 1", "-p", "novalue"])
        assert exc_info.value.code == 2

    def test_unreadable_file_is_usage_error(self, tmp_path, capsys):
        missing = tmp_path / "missing.sql"

        with pytest.raises(SystemExit) as exc_info:
            main.main(["query", "-f", str(missing)])

        assert exc_info.value.code == 2
        assert "cannot read" in capsys.readouterr().err

    @pytest.mark.parametrize("first,second", [("id", "id"), ("id", "@id")])
    @patch("main.invoke_scalar")
    def test_duplicate_param_is_usage_error(self, mock_scalar, first, second, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main.main(["scalar", "SELECT @id", "-p", f"{first}=1", "-p", f"{second}=2"])

        assert exc_info.value.code == 2
        assert "duplicate parameter: @id" in capsys.readouterr().err
        mock_scalar.assert_not_called()

    def test_missing_sql_is_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            main.main(["scalar"])
        assert exc_info.value.code == 2


class TestConnectionCommand:
    """Tests for the test sub-command."""

    @patch("main.test_connection")
    def test_reachable(self, mock_test, capsys):
        mock_test.return_value = True

        assert main.main(["test", "-c", "dbname=test", "--timeout", "3"]) == 0
        assert capsys.readouterr().out == "True\n"
        mock_test.assert_called_once_with("dbname=test", 3)

    @patch("main.test_connection")
    def test_unreachable(self, mock_test, capsys):
        mock_test.return_value = False

        assert main.main(["test"]) == 1
        assert capsys.readouterr().out == "False\n"


class TestSelfUpdateCommand:
    """Tests for the self-update sub-command."""

    @patch("main.UpdateService")
    def test_check_only(self, mock_service_cls, capsys):
        service = MagicMock()
        service.check_for_update.return_value = Release(
            version="9.9.9", tag="v9.9.9", archive_url="https://example.invalid/a.zip"
        )
        mock_service_cls.return_value = service

        assert main.main(["self-update", "--check"]) == 0
        assert "Update available: 9.9.9" in capsys.readouterr().out
        service.self_update.assert_not_called()

    @patch("main.UpdateService")
    def test_check_failure_exit_code(self, mock_service_cls, capsys):
        mock_service_cls.return_value.check_for_update.side_effect = requests.ConnectionError("network down")

        assert main.main(["self-update", "--check"]) == 1
        assert "No update available" not in capsys.readouterr().out

    @patch("main.UpdateService")
    def test_check_without_metadata_url_exit_code(self, mock_service_cls):
        mock_service_cls.return_value.check_for_update.side_effect = ValueError(
            "No update metadata URL configured (UPDATE_METADATA_URL)."
        )

        assert main.main(["self-update", "--check"]) == 1

    @patch("main.UpdateService")
    def test_check_up_to_date(self, mock_service_cls, capsys):
        mock_service_cls.return_value.check_for_update.return_value = None

        assert main.main(["self-update", "--check"]) == 0
        assert "No update available" in capsys.readouterr().out

    @patch("main.UpdateService")
    def test_update_success(self, mock_service_cls):
        mock_service_cls.return_value.self_update.return_value = UpdateResult(
            status=STATUS_UPDATED, version="9.9.9", files_copied=12
        )

        assert main.main(["self-update", "--force", "--url", "https://example.invalid/latest"]) == 0
        mock_service_cls.assert_called_once_with(metadata_url="https://example.invalid/latest")
        mock_service_cls.return_value.self_update.assert_called_once_with(force=True)

    @patch("main.UpdateService")
    def test_update_failure(self, mock_service_cls):
        mock_service_cls.return_value.self_update.return_value = UpdateResult(
            status=STATUS_FAILED, errors=["fetch: network down"]
        )

        assert main.main(["self-update"]) == 1
