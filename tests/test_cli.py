"""
Tests for the aegis-relayer command line entry point.
"""
import threading
from unittest.mock import MagicMock

import pytest

from aegis_relayer import cli
from aegis_relayer.config import RelayerConfig
from aegis_relayer.ledger import StubLedger, VaultLedger


def test_parser_defaults():
    args = cli.build_parser().parse_args([])

    assert args.host == "0.0.0.0"
    assert args.port is None
    assert args.batch_size_threshold is None
    assert args.stub is False
    assert args.log_level == "INFO"


def test_parser_overrides():
    args = cli.build_parser().parse_args(["--stub", "--threshold", "3", "--cooldown", "1.5", "--port", "8000"])

    assert args.stub is True
    assert args.batch_size_threshold == 3
    assert args.cooldown_seconds == 1.5
    assert args.port == 8000


def test_build_ledger_stub():
    ledger = cli.build_ledger(RelayerConfig(), stub=True)

    assert isinstance(ledger, StubLedger)
    assert ledger.available_funds() == cli.STUB_BALANCE_WEI


def test_build_ledger_vault():
    ledger = cli.build_ledger(RelayerConfig(gas_safety_margin=1.3), stub=False)

    assert isinstance(ledger, VaultLedger)
    assert ledger.gas_safety_margin == 1.3


def test_stub_chain_mines_fee_blocks():
    stop_event = threading.Event()

    class CountingLedger(StubLedger):
        def mine_block(self, base_fee=None, intents=()):
            number = super().mine_block(base_fee=base_fee, intents=intents)
            if number == 3:
                stop_event.set()
            return number

    ledger = CountingLedger()
    cli._run_stub_chain(ledger, stop_event, block_time=0, seed=1)

    assert ledger.block_number == 3
    assert all(ledger.fetch_base_fee(n) > 0 for n in range(1, 4))


def test_invalid_config_exits_with_code_2(monkeypatch):
    monkeypatch.setenv("RPC_URL", "http://rpc.example.com")
    run = MagicMock()
    monkeypatch.setattr(cli.uvicorn, "run", run)

    assert cli.main(["--stub"]) == 2
    run.assert_not_called()


def test_main_serves_and_shuts_down(monkeypatch):
    for name in ("RPC_URL", "PORT", "BATCH_SIZE_THRESHOLD"):
        monkeypatch.delenv(name, raising=False)
    engines = []
    original_engine = cli.RelayerEngine

    def track_engine(*args, **kwargs):
        engine = original_engine(*args, **kwargs)
        engines.append(engine)
        return engine

    run = MagicMock()
    monkeypatch.setattr(cli, "RelayerEngine", track_engine)
    monkeypatch.setattr(cli.uvicorn, "run", run)

    assert cli.main(["--stub", "--port", "4321", "--threshold", "2", "--stub-block-time", "60"]) == 0

    _, kwargs = run.call_args
    assert kwargs["port"] == 4321
    engine = engines[0]
    assert engine.threshold == 2
    assert engine._feeds == []


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--version"])

    assert exc_info.value.code == 0
    assert "aegis-relayer" in capsys.readouterr().out
