from __future__ import annotations

import argparse
from pathlib import Path

import pytest

import tripsync.cli as cli
from tripsync import (
    Balance,
    Bill,
    ConfigError,
    InvalidParentError,
    LedgerEngine,
    NotAuthenticatedError,
    RemoteUnavailableError,
    Trip,
    TripSync,
    TripSyncConfig,
)
from tripsync.cli import _format_balance, _format_bill_list, build_parser, main
from tripsync.core.auth import StaticAuthProvider
from tripsync.core.overlay import FileKeyValueStore
from tripsync.core.progress import SyncProgress
from tripsync.core.remote import MemoryRemoteStore
from tests.fakes.world import END, START


def _use_remote(monkeypatch: pytest.MonkeyPatch, remote: MemoryRemoteStore) -> None:
    """Route ``TripSync.from_config`` to *remote* while keeping the file overlay."""

    class _Factory:
        @staticmethod
        def from_config(config: TripSyncConfig, *, progress: SyncProgress | None = None) -> TripSync:
            return TripSync(
                remote=remote,
                auth=StaticAuthProvider(config.user_id),
                storage=FileKeyValueStore(config.overlay_dir),
                config=config,
                progress=progress,
            )

    monkeypatch.setattr(cli, "TripSync", _Factory)


class TestParser:
    def test_balance_defaults(self) -> None:
        args = build_parser().parse_args(["balance"])

        assert args.command == "balance"
        assert args.config == "./tripsync.json"
        assert args.verbose is False

    def test_bills_archived_flag(self) -> None:
        args = build_parser().parse_args(["bills", "--archived", "--config", "x.json", "-v"])

        assert args.archived is True
        assert args.config == "x.json"
        assert args.verbose is True

    def test_archive_requires_a_bill_id(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["archive"])
        assert exc_info.value.code == 2

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.startswith("tripsync ")


class TestFormatting:
    def test_format_balance(self) -> None:
        trip = Trip(id="t1", title="Lisbon", start_date=START, end_date=END)
        balance = Balance(user_id="u1", owes_others=90.0, others_owe_me=12.5)

        text = _format_balance(balance, trip, "t1")

        assert "tripsync - balance for u1" in text
        assert "Trip:         Lisbon (t1)" in text
        assert "You owe:      90.00" in text
        assert "Owed to you:  12.50" in text
        assert "Net:          -77.50" in text

    def test_format_empty_bill_list(self) -> None:
        text = _format_bill_list([], archived=True, user_id="u1", ledger=LedgerEngine())

        assert "tripsync - 0 archived bills" in text
        assert "  none" in text

    def test_format_bill_list(self, dinner_bill: Bill) -> None:
        draft = dinner_bill.model_copy(update={"is_draft": True, "currency": "EUR"})

        text = _format_bill_list([draft], archived=False, user_id="u2", ledger=LedgerEngine())

        assert "tripsync - 1 active bill\n" in text
        assert "  b1  Dinner [draft]" in text
        assert "Participants: u1, u2, u3" in text
        assert "Your balance: 30.00 EUR" in text


class TestMain:
    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (ConfigError("bad config"), 3),
            (NotAuthenticatedError("nobody"), 4),
            (RemoteUnavailableError("offline"), 4),
            (InvalidParentError("no current trip"), 5),
            (RuntimeError("boom"), 1),
        ],
    )
    def test_errors_map_to_exit_codes(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        error: Exception,
        code: int,
    ) -> None:
        async def failing(args: argparse.Namespace) -> None:
            raise error

        monkeypatch.setattr(cli, "_run_balance", failing)

        assert main(["balance"]) == code
        assert f"error: {error}" in capsys.readouterr().err

    def test_dispatches_to_the_command_runner(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: list[argparse.Namespace] = []

        async def fake_restore(args: argparse.Namespace) -> None:
            seen.append(args)

        monkeypatch.setattr(cli, "_run_restore", fake_restore)

        assert main(["restore", "b1", "--config", "custom.json"]) == 0
        assert seen[0].bill_id == "b1"
        assert seen[0].config == "custom.json"


class TestCommands:
    def test_balance(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        remote: MemoryRemoteStore,
        config_file: Path,
    ) -> None:
        _use_remote(monkeypatch, remote)

        assert main(["balance", "--config", str(config_file)]) == 0

        out = capsys.readouterr().out
        assert "Trip:         Lisbon (t1)" in out
        assert "You owe:      90.00" in out
        assert "Owed to you:  12.50" in out

    def test_archive_then_list(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        remote: MemoryRemoteStore,
        config_file: Path,
    ) -> None:
        _use_remote(monkeypatch, remote)

        assert main(["archive", "b1", "--config", str(config_file), "--verbose"]) == 0
        assert "archived b1" in capsys.readouterr().out

        assert main(["bills", "--archived", "--config", str(config_file)]) == 0
        archived_out = capsys.readouterr().out
        assert "1 archived bill" in archived_out
        assert "b1  Dinner" in archived_out

        assert main(["bills", "--config", str(config_file)]) == 0
        active_out = capsys.readouterr().out
        assert "b2  Taxi" in active_out
        assert "b1  Dinner" not in active_out

        assert main(["restore", "b1", "--config", str(config_file)]) == 0
        assert "restored b1" in capsys.readouterr().out
        assert (config_file.parent / "overlay" / "archivedBills_t1.json").read_text(encoding="utf-8") == "[]"

        assert remote.document("trips/t1/bills/b1") is not None
        assert "archived" not in remote.document("trips/t1/bills/b1")  # type: ignore[operator]

    def test_missing_config(self, capsys: pytest.CaptureFixture[str], tmp_path: Path) -> None:
        assert main(["balance", "--config", str(tmp_path / "missing.json")]) == 3
        assert "failed reading config file" in capsys.readouterr().err

    def test_signed_out_user(
        self, monkeypatch: pytest.MonkeyPatch, remote: MemoryRemoteStore, tmp_path: Path
    ) -> None:
        config_path = tmp_path / "tripsync.json"
        config_path.write_text("{}", encoding="utf-8")
        _use_remote(monkeypatch, remote)

        assert main(["balance", "--config", str(config_path)]) == 4

    def test_user_without_a_trip(
        self, monkeypatch: pytest.MonkeyPatch, remote: MemoryRemoteStore, tmp_path: Path
    ) -> None:
        remote.put("users/u3", {"name": "Cy"})
        config_path = tmp_path / "tripsync.json"
        config_path.write_text('{"user_id": "u3"}', encoding="utf-8")
        _use_remote(monkeypatch, remote)

        assert main(["bills", "--config", str(config_path)]) == 5
