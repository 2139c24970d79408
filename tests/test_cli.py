"""
Tests for the command-line interface.

The Baidu client is replaced by an in-memory fake passed as api_factory,
so the full argument parsing, batch run, printing and export path is
exercised without network access.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import toml

from license_verifier import __version__
from license_verifier.cli import (
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_USAGE,
    CLIInterface,
    main,
)
from license_verifier.core.data_models import BusinessLicenseInfo, TwoFactorVerification
from license_verifier.utils.error_handler import APIError


class FakeBusinessAPI:
    """In-memory stand-in for BaiduBusinessAPI."""

    instances = []

    def __init__(self, api_key, secret_key, timeout=30.0):
        self.api_key = api_key
        self.secret_key = secret_key
        self.timeout = timeout
        self.calls = []
        self.failing = set()
        FakeBusinessAPI.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def query_business(self, name):
        self.calls.append(name)
        if name.startswith("Broken"):
            raise APIError("API error 216100: invalid param")
        return BusinessLicenseInfo(name=name, reg_number=f"REG-{len(self.calls)}", status="Active")

    async def verify_business(self, company, regnum):
        self.calls.append((company, regnum))
        verified = regnum.startswith("91")
        return TwoFactorVerification(
            company=company,
            regnum=regnum,
            status="Verified" if verified else "Not Verified",
            name_match=True,
            code_match=verified,
        )


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Leave the root logger to pytest."""
    mock_setup = MagicMock()
    monkeypatch.setattr("license_verifier.cli.setup_logging", mock_setup)
    return mock_setup


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("BAIDU_API_KEY", "test-api-key-1234")
    monkeypatch.setenv("BAIDU_SECRET_KEY", "test-secret-key-5678")


@pytest.fixture
def cli():
    FakeBusinessAPI.instances = []
    return CLIInterface(api_factory=FakeBusinessAPI)


class TestArgumentParsing:
    """Tests for the argument parser."""

    def test_version(self, cli, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_command_required(self, cli):
        with pytest.raises(SystemExit):
            cli.parse_args([])

    def test_repeatable_format(self, cli):
        args = cli.parse_args(
            ["query", "A", "--format", "markdown", "--format", "excel", "--batch-size", "3"]
        )

        assert args.formats == ["markdown", "excel"]
        assert args.batch_size == 3
        assert args.names == ["A"]

    def test_invalid_format_rejected(self, cli):
        with pytest.raises(SystemExit):
            cli.parse_args(["query", "A", "--format", "pdf"])


class TestQueryCommand:
    """Tests for the query command."""

    def test_query_names(self, cli, credentials, capsys):
        code = cli.run(["query", "-q", "Alpha Co.,Beta Co.", "Gamma Co."])

        assert code == EXIT_OK
        api = FakeBusinessAPI.instances[0]
        assert sorted(api.calls) == ["Alpha Co.", "Beta Co.", "Gamma Co."]
        assert api.api_key == "test-api-key-1234"

        out = capsys.readouterr().out
        assert out.index("Company: Alpha Co.") < out.index("Company: Gamma Co.")
        assert "Processed 3 item(s)" in out
        assert "Status: Active" in out

    def test_query_from_file(self, cli, credentials, tmp_path, capsys):
        path = tmp_path / "companies.txt"
        path.write_text("Alpha Co.\nBeta Co.\n", encoding="utf-8")

        code = cli.run(["query", "-q", "--input", str(path)])

        assert code == EXIT_OK
        assert "Processed 2 item(s)" in capsys.readouterr().out

    def test_custom_separator(self, cli, credentials):
        code = cli.run(["query", "-q", "--separator", "+", "Alpha Co., Ltd.+Beta Co."])

        assert code == EXIT_OK
        assert sorted(FakeBusinessAPI.instances[0].calls) == ["Alpha Co., Ltd.", "Beta Co."]

    def test_separator_keeps_commas_in_names(self, cli, credentials):
        code = cli.run([
            "query", "-q", "--separator", "、",
            "Example Technology Co., Ltd.、Another Trading Co., Ltd.",
        ])

        assert code == EXIT_OK
        assert FakeBusinessAPI.instances[0].calls == [
            "Example Technology Co., Ltd.",
            "Another Trading Co., Ltd.",
        ]

    def test_default_separators_split_on_comma(self, cli, credentials):
        code = cli.run(["query", "-q", "Example Technology Co., Ltd."])

        assert code == EXIT_OK
        assert FakeBusinessAPI.instances[0].calls == ["Example Technology Co.", "Ltd."]

    def test_export(self, cli, credentials, tmp_path, capsys):
        code = cli.run(
            ["query", "-q", "Alpha Co.", "--format", "markdown", "--output-dir", str(tmp_path / "out")]
        )

        assert code == EXIT_OK
        exported = list((tmp_path / "out").glob("business_info_*.md"))
        assert len(exported) == 1
        assert "## 1. Alpha Co." in exported[0].read_text(encoding="utf-8")
        assert "Exported Markdown" in capsys.readouterr().out

    def test_no_export_by_default(self, cli, credentials, tmp_path):
        cli.run(["query", "-q", "Alpha Co."])

        assert not (tmp_path / "exports").exists()

    def test_processing_failure(self, cli, credentials, capsys):
        code = cli.run(["query", "-q", "--max-retries", "0", "Alpha Co.", "Broken Co."])

        assert code == EXIT_FAILURE
        assert "Broken Co." in capsys.readouterr().err

    def test_missing_credentials(self, cli, capsys):
        code = cli.run(["query", "-q", "Alpha Co."])

        assert code == EXIT_USAGE
        assert "BAIDU_API_KEY" in capsys.readouterr().err
        assert FakeBusinessAPI.instances == []

    def test_no_input(self, cli, credentials, capsys):
        assert cli.run(["query", "-q"]) == EXIT_USAGE
        assert "No input provided" in capsys.readouterr().err

    def test_invalid_batch_size(self, cli, credentials):
        assert cli.run(["query", "-q", "--batch-size", "0", "Alpha Co."]) == EXIT_USAGE

    def test_unsupported_input_file(self, cli, credentials, tmp_path):
        path = tmp_path / "companies.pdf"
        path.write_bytes(b"%PDF")

        assert cli.run(["query", "-q", "--input", str(path)]) == EXIT_USAGE

    def test_config_file_settings(self, cli, credentials, tmp_path):
        config_path = tmp_path / "settings.toml"
        config_path.write_text(
            toml.dumps({"batch": {"batch_size": 1, "request_interval": 0.0}}),
            encoding="utf-8",
        )

        code = cli.run(["query", "-q", "--config", str(config_path), "A", "B"])

        assert code == EXIT_OK
        assert FakeBusinessAPI.instances[0].calls == ["A", "B"]

    def test_logging_configured(self, cli, credentials, quiet_logging):
        cli.run(["query", "-q", "-v", "Alpha Co."])

        quiet_logging.assert_called_once()
        assert quiet_logging.call_args.kwargs["level"] == "DEBUG"


class TestVerifyCommand:
    """Tests for the verify command."""

    def test_verify_pairs(self, cli, credentials, capsys):
        code = cli.run(
            ["verify", "-q", "--company", "A Co.,B Co.", "--regnum", "91110108X,123"]
        )

        assert code == EXIT_OK
        out = capsys.readouterr().out
        assert "Company: A Co.\nRegistration Number: 91110108X\nResult: Verified" in out
        assert "Company: B Co.\nRegistration Number: 123\nResult: Not Verified" in out
        assert "Code Match: No" in out

    def test_verify_from_csv(self, cli, credentials, tmp_path, capsys):
        path = tmp_path / "pairs.csv"
        path.write_text("A Co.,9111\nB Co.,9131\n", encoding="utf-8")

        code = cli.run(["verify", "-q", "--input", str(path), "--format", "excel",
                        "--output-dir", str(tmp_path / "out")])

        assert code == EXIT_OK
        assert sorted(FakeBusinessAPI.instances[0].calls) == [("A Co.", "9111"), ("B Co.", "9131")]
        assert list((tmp_path / "out").glob("verification_*.xlsx"))

    def test_verify_csv_with_header(self, cli, credentials, tmp_path):
        path = tmp_path / "pairs.csv"
        path.write_text(
            '公司名称,注册号\n"Example Technology Co., Ltd.",91110108MA01ABCD1X\n',
            encoding="utf-8",
        )

        code = cli.run(["verify", "-q", "--input", str(path)])

        assert code == EXIT_OK
        assert FakeBusinessAPI.instances[0].calls == [
            ("Example Technology Co., Ltd.", "91110108MA01ABCD1X")
        ]

    def test_verify_csv_column_options(self, cli, credentials, tmp_path):
        path = tmp_path / "pairs.csv"
        path.write_text(
            "Batch 7,,\nCode,Note,Name\n9111,first,A Co.\n", encoding="utf-8"
        )

        code = cli.run([
            "verify", "-q", "--input", str(path), "--header-row", "2",
            "--company-column", "Name", "--regnum-column", "1",
        ])

        assert code == EXIT_OK
        assert FakeBusinessAPI.instances[0].calls == [("A Co.", "9111")]

    def test_verify_csv_unknown_column(self, cli, credentials, tmp_path, capsys):
        path = tmp_path / "pairs.csv"
        path.write_text("公司名称,注册号\nA公司,9111\n", encoding="utf-8")

        code = cli.run(["verify", "-q", "--input", str(path), "--company-column", "Firm"])

        assert code == EXIT_USAGE
        assert "Firm" in capsys.readouterr().err
        assert FakeBusinessAPI.instances == []

    def test_mismatched_lists(self, cli, credentials, capsys):
        code = cli.run(["verify", "-q", "--company", "A Co.,B Co.", "--regnum", "9111"])

        assert code == EXIT_USAGE
        assert "do not match" in capsys.readouterr().err

    def test_company_without_regnum(self, cli, credentials):
        assert cli.run(["verify", "-q", "--company", "A Co."]) == EXIT_USAGE


class TestCreateConfig:
    """Tests for the create-config command."""

    def test_creates_toml(self, cli, tmp_path, capsys):
        path = tmp_path / "license_verifier.toml"

        assert cli.run(["create-config", str(path)]) == EXIT_OK

        data = toml.loads(path.read_text(encoding="utf-8"))
        assert data["batch"]["max_concurrent"] == 5
        assert "Created configuration file" in capsys.readouterr().out

    def test_creates_json(self, cli, tmp_path):
        path = tmp_path / "config.json"

        assert cli.run(["create-config", str(path), "--format", "json"]) == EXIT_OK
        assert path.exists()

    def test_refuses_to_overwrite(self, cli, tmp_path):
        path = tmp_path / "existing.toml"
        path.write_text("# keep me\n", encoding="utf-8")

        assert cli.run(["create-config", str(path)]) == EXIT_FAILURE
        assert path.read_text(encoding="utf-8") == "# keep me\n"

    def test_default_path(self, cli, tmp_path):
        assert cli.run(["create-config"]) == EXIT_OK
        assert (tmp_path / "license_verifier.toml").exists()


def test_main_entry_point(monkeypatch, tmp_path):
    monkeypatch.setattr("license_verifier.cli.BaiduBusinessAPI", FakeBusinessAPI)

    assert main(["create-config", str(Path(tmp_path) / "from_main.toml")]) == EXIT_OK
