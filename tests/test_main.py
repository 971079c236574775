import json
import pytest

import config
from main import configure_logging, main, parse_args, run


def write_csv(tmp_path, lines):
    csv_file = tmp_path / "transactions.csv"
    csv_file.write_text("\n".join(lines))
    return str(csv_file)


@pytest.fixture(autouse=True)
def reset_settings():
    """Drop cached settings so environment changes apply per test."""
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


class TestCommandLine:
    """Test the command entry point end to end."""

    def test_example_run(self, tmp_path, capsys):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        ])

        exit_code = main([path, "--env", "testing"])

        assert exit_code == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
            "2,2.0000,0.0000,2.0000,false\n"
        )

    def test_dispute_lifecycle_run(self, tmp_path, capsys):
        path = write_csv(tmp_path, [
            "type,client,tx,amount",
            "deposit,1,1,10",
            "deposit,2,2,20",
            "withdrawal,1,3,5",
            "dispute,1,1,",
            "deposit,3,4,7.25",
            "dispute,3,4,",
            "chargeback,3,4,",
            "deposit,3,5,100",
            "dispute,2,1,",
            "garbage,row",
        ])

        assert main([path, "--env", "testing"]) == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,-5.0000,10.0000,5.0000,false\n"
            "2,20.0000,0.0000,20.0000,false\n"
            "3,0.0000,0.0000,0.0000,true\n"
        )

    def test_missing_input_returns_error(self, tmp_path, capsys):
        exit_code = main([str(tmp_path / "missing.csv"), "--env", "testing"])

        captured = capsys.readouterr()
        assert exit_code == 1
        assert captured.out == ""
        assert "Ledger run failed" in captured.err

    def test_missing_argument_exits_with_usage(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 2
        assert "usage" in capsys.readouterr().err

    def test_logs_go_to_stderr_as_json(self, tmp_path, capsys):
        path = write_csv(tmp_path, ["type,client,tx,amount", "deposit,1,1,1"])

        assert main([path, "--log-level", "INFO", "--log-format", "json"]) == 0

        captured = capsys.readouterr()
        assert captured.out.startswith("client,available,held,total,locked\n")
        events = [json.loads(line) for line in captured.err.splitlines() if line.strip()]
        completed = [e for e in events if e["event"] == "Ledger run completed"]
        assert completed
        assert completed[0]["rows_applied"] == 1
        assert completed[0]["accounts_count"] == 1

    def test_unknown_log_level_exits_with_usage(self, tmp_path, capsys):
        path = write_csv(tmp_path, ["type,client,tx,amount", "deposit,1,1,1"])

        with pytest.raises(SystemExit) as exc_info:
            main([path, "--log-level", "verbose"])

        assert exc_info.value.code == 2
        assert "--log-level" in capsys.readouterr().err

    def test_invalid_log_level_setting_returns_usage_error(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "verbose")
        path = write_csv(tmp_path, ["type,client,tx,amount", "deposit,1,1,1"])

        exit_code = main([path])

        captured = capsys.readouterr()
        assert exit_code == 2
        assert captured.out == ""
        assert "Invalid settings" in captured.err

    def test_largest_amounts_are_summed_and_rendered(self, tmp_path, capsys):
        path = write_csv(tmp_path, [
            "type,client,tx,amount",
            "deposit,1,1,99999999999999.9999",
            "deposit,1,2,99999999999999.9999",
            "deposit,1,3,999999999999999999999999.9999",
        ])

        assert main([path, "--env", "testing"]) == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,199999999999999.9998,0.0000,199999999999999.9998,false\n"
        )


class TestRun:
    """Test run orchestration without argument parsing."""

    def test_run_returns_summary(self, tmp_path, capsys):
        configure_logging(config.TestingSettings())
        path = write_csv(tmp_path, [
            "type,client,tx,amount",
            "deposit,1,1,5",
            "deposit,1,1,9",
            "dispute,1,1,",
            "resolve,1,2,",
        ])
        output = tmp_path / "accounts.csv"

        with output.open("w", newline="") as stream:
            summary = run(path, stream, config.TestingSettings())

        assert summary.rows_processed == 4
        assert summary.rows_applied == 3
        assert summary.rows_ignored == 1
        assert summary.transactions_count == 1
        assert output.read_text() == (
            "client,available,held,total,locked\n"
            "1,5.0000,9.0000,14.0000,false\n"
        )


class TestArguments:
    """Test argument parsing."""

    def test_defaults(self):
        args = parse_args(["input.csv"])

        assert args.input == "input.csv"
        assert args.env is None
        assert args.log_level is None
        assert args.log_format is None

    def test_rejects_unknown_environment(self):
        with pytest.raises(SystemExit):
            parse_args(["input.csv", "--env", "staging"])

    def test_log_level_is_case_insensitive(self):
        assert parse_args(["input.csv", "--log-level", "debug"]).log_level == "DEBUG"
