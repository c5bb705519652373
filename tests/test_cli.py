"""Tests for the sol-tracker CLI, formatting helpers and exports."""

import csv
import json

import pytest
from typer.testing import CliRunner

from sol_trade_tracker import main
from sol_trade_tracker.api_clients import TransactionFetchError
from sol_trade_tracker.models import SOL_MINT, Trade, TradeDirection, TokenPosition, PriceExtrema
from sol_trade_tracker.orchestrator import ReportOrchestrator
from sol_trade_tracker.utils import (
    analyze_position,
    format_usd,
    format_price,
    format_percent,
    shorten_address,
    time_ago,
    is_valid_solana_address,
)

runner = CliRunner()

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def _sample_report():
    position = TokenPosition(mint=BONK, symbol="BONK", current_price=0.5)
    position.buys.append(Trade("sig-b", 1_700_000_000, TradeDirection.BUY, BONK, 100.0, 100.0, 1.0, SOL_MINT))
    position.sells.append(Trade("sig-s", 1_700_003_600, TradeDirection.SELL, BONK, 50.0, 75.0, 1.5, SOL_MINT))
    return analyze_position(position, PriceExtrema(2.0, 0.4, 2.0))


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("HELIUS_API_KEY", "test-key")
    monkeypatch.setenv("RATE_LIMIT_DELAY", "0")


# ── Formatting ──────────────────────────────────────────────────────────


class TestFormatting:
    @pytest.mark.parametrize("value, expected", [
        (None, "-"),
        (float("nan"), "-"),
        (12.5, "$12.50"),
        (1_500, "$1.50K"),
        (2_500_000, "$2.50M"),
        (3_000_000_000, "$3.00B"),
        (-1_500, "-$1.50K"),
    ])
    def test_format_usd(self, value, expected):
        assert format_usd(value) == expected

    @pytest.mark.parametrize("value, expected", [
        (None, "-"),
        (0, "-"),
        (0.000000001, "$1.00e-09"),
        (0.00002345, "$0.0000234500"),
        (0.005, "$0.00500000"),
        (0.5, "$0.500000"),
        (12.5, "$12.5000"),
        (250, "$250.00"),
    ])
    def test_format_price(self, value, expected):
        assert format_price(value) == expected

    def test_format_percent(self):
        assert format_percent(12.5) == "+12.50%"
        assert format_percent(0) == "+0.00%"
        assert format_percent(-3.2) == "-3.20%"
        assert format_percent(None) == "-"

    def test_shorten_address(self):
        assert shorten_address(BONK) == "DezX...B263"
        assert shorten_address(None) == ""

    def test_time_ago(self):
        assert time_ago(1_000, now=1_030) == "30s ago"
        assert time_ago(1_000, now=1_000 + 5 * 60) == "5m ago"
        assert time_ago(1_000, now=1_000 + 3 * 3600) == "3h ago"
        assert time_ago(1_000, now=1_000 + 2 * 86400) == "2d ago"

    def test_solana_address_validation(self):
        assert is_valid_solana_address(WALLET)
        assert not is_valid_solana_address("")
        assert not is_valid_solana_address("0x6b175474e89094c44da98b954eedeac495271d0f")
        assert not is_valid_solana_address("short")


# ── CLI ─────────────────────────────────────────────────────────────────


class TestAnalyzeCommand:
    def test_rejects_invalid_wallet(self, env):
        result = runner.invoke(main.app, ["analyze", "not-a-wallet"])
        assert result.exit_code == 1
        assert "Invalid Solana wallet address" in result.output

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("HELIUS_API_KEY", raising=False)
        result = runner.invoke(main.app, ["analyze", WALLET])
        assert result.exit_code == 1
        assert "HELIUS_API_KEY" in result.output

    def test_rejects_unknown_sort(self, env):
        result = runner.invoke(main.app, ["analyze", WALLET, "--sort", "alphabetical"])
        assert result.exit_code == 1

    def test_fetch_failure_is_reported(self, env, monkeypatch):
        def _fail(self, wallet):
            raise TransactionFetchError("Helius API error: 500")

        monkeypatch.setattr(ReportOrchestrator, "analyze_wallet", _fail)
        result = runner.invoke(main.app, ["analyze", WALLET])
        assert result.exit_code == 1
        assert "Helius API error: 500" in result.output

    def test_table_output(self, env, monkeypatch):
        monkeypatch.setattr(ReportOrchestrator, "analyze_wallet", lambda self, wallet: [_sample_report()])
        result = runner.invoke(main.app, ["analyze", WALLET])
        assert result.exit_code == 0, result.output
        assert "Wallet Summary" in result.output
        assert "Roundtrips" in result.output

    def test_empty_result(self, env, monkeypatch):
        monkeypatch.setattr(ReportOrchestrator, "analyze_wallet", lambda self, wallet: [])
        result = runner.invoke(main.app, ["analyze", WALLET])
        assert result.exit_code == 0
        assert "No directional trades found" in result.output

    def test_json_export(self, env, monkeypatch, tmp_path):
        monkeypatch.setattr(ReportOrchestrator, "analyze_wallet", lambda self, wallet: [_sample_report()])
        out = tmp_path / "report.json"

        result = runner.invoke(main.app, ["analyze", WALLET, "-f", "json", "-o", str(out)])

        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text())
        assert data["wallet"] == WALLET
        assert data["summary"]["tokens_traded"] == 1
        token = data["tokens"][0]
        assert token["mint"] == BONK
        assert token["status"] == "HOLDING"
        assert token["realized_pnl"] == pytest.approx(25.0)
        assert [t["signature"] for t in token["buys"]] == ["sig-b"]
        assert token["sells"][0]["direction"] == "SELL"

    def test_csv_export(self, env, monkeypatch, tmp_path):
        monkeypatch.setattr(ReportOrchestrator, "analyze_wallet", lambda self, wallet: [_sample_report()])
        out = tmp_path / "report.csv"

        result = runner.invoke(main.app, ["analyze", WALLET, "-f", "csv", "-o", str(out)])

        assert result.exit_code == 0, result.output
        with open(out, newline="") as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["mint"] == BONK
        assert rows[0]["status"] == "HOLDING"
        assert float(rows[0]["tokens_held"]) == pytest.approx(50.0)


class TestSetupCommand:
    def test_writes_env_template(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(main.app, ["setup"])
        assert result.exit_code == 0
        assert "HELIUS_API_KEY=" in (tmp_path / ".env").read_text()

    def test_template_lists_every_setting(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        runner.invoke(main.app, ["setup"])
        content = (tmp_path / ".env").read_text()
        for var in (
            "MAX_TRANSACTIONS", "CANDLE_LIMIT", "RATE_LIMIT_DELAY", "MAX_CONCURRENT_LOOKUPS",
            "REQUEST_TIMEOUT", "MAX_RETRIES", "RETRY_BASE_DELAY", "ROUNDTRIP_MULTIPLIER",
            "HOLDING_DUST_THRESHOLD", "OUTPUT_FORMAT", "HELIUS_BASE_URL",
            "DEXSCREENER_BASE_URL", "GECKOTERMINAL_BASE_URL",
        ):
            assert f"{var}=" in content

    def test_commented_overrides_keep_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        runner.invoke(main.app, ["setup"])
        content = (tmp_path / ".env").read_text()
        assert "# RETRY_BASE_DELAY=0.5" in content
        assert "# GECKOTERMINAL_BASE_URL=https://api.geckoterminal.com/api/v2" in content

    def test_keeps_existing_env_when_declined(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("HELIUS_API_KEY=mine\n")
        result = runner.invoke(main.app, ["setup"], input="n\n")
        assert result.exit_code == 0
        assert (tmp_path / ".env").read_text() == "HELIUS_API_KEY=mine\n"
