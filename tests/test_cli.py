"""
Tests for the aligned-submit CLI.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from aligned_submit import cli as cli_module
from aligned_submit.cli import CLIPromptProvider, cli
from aligned_submit.exceptions import NonceError
from aligned_submit.models import Cancelled, Failed, PaymentReceipt, ProvingSystemId, Stage, Success

PAYMENT = PaymentReceipt(
    tx_hash="0x" + "a" * 64,
    block_number=16,
    amount_wei=4_000_000_000_000_000,
    from_address="0x" + "1" * 40,
    to_address="0x815aeCA64a974297942D2Bbf034ABEe22a38A003",
)

SUBMIT_ARGS = [
    "submit",
    "--keystore", "keystore.json",
    "--proof", "proof.bin",
    "--elf", "program.elf",
    "--rpc-url", "https://rpc.example.org",
]


@pytest.fixture(autouse=True)
def cli_environment():
    """Keep pytest's log handlers and use a wide console so lines don't wrap."""
    with patch.object(cli_module, "setup_logging"), \
            patch.object(cli_module, "console", Console(width=200)):
        yield


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workflow():
    wf = MagicMock()
    wf.run = AsyncMock()
    with patch.object(cli_module, "build_workflow", return_value=wf) as build:
        wf.build = build
        yield wf


class TestSubmitCommand:
    """Tests for `aligned-submit submit`."""

    def test_success(self, runner, workflow):
        workflow.run.return_value = Success(
            explorer_url="https://explorer.alignedlayer.com/batches/0xabc",
            batch_merkle_root="0xabc",
            payment=PAYMENT,
        )

        result = runner.invoke(cli, SUBMIT_ARGS, obj={})

        assert result.exit_code == 0
        assert "https://explorer.alignedlayer.com/batches/0xabc" in result.output

    def test_request_defaults(self, runner, workflow):
        workflow.run.return_value = Cancelled()

        runner.invoke(cli, SUBMIT_ARGS, obj={})

        request = workflow.run.await_args.args[0]
        assert request.chain_id == 17000
        assert request.max_fee == 1_300_000_000_000_000
        assert request.proving_system is ProvingSystemId.SP1
        assert request.public_input_path is None

    def test_request_options(self, runner, workflow):
        workflow.run.return_value = Cancelled()

        runner.invoke(cli, SUBMIT_ARGS + [
            "--public-input", "pub.bin",
            "--chain-id", "31337",
            "--max-fee", "42",
            "--proving-system", "risc0",
        ], obj={})

        request = workflow.run.await_args.args[0]
        assert request.public_input_path == "pub.bin"
        assert request.chain_id == 31337
        assert request.max_fee == 42
        assert request.proving_system is ProvingSystemId.RISC0

    def test_cancelled_exits_cleanly(self, runner, workflow):
        workflow.run.return_value = Cancelled()

        result = runner.invoke(cli, SUBMIT_ARGS, obj={})

        assert result.exit_code == 0
        assert "No funds were moved" in result.output

    def test_failure_before_payment(self, runner, workflow):
        workflow.run.return_value = Failed(stage=Stage.CREDENTIALS, cause="Failed to decrypt keystore")

        result = runner.invoke(cli, SUBMIT_ARGS, obj={})

        assert result.exit_code == 1
        assert "Failed to decrypt keystore" in result.output
        assert "No payment was made" in result.output

    def test_failure_after_payment_reports_spent_funds(self, runner, workflow):
        workflow.run.return_value = Failed(
            stage=Stage.SUBMISSION, cause="Batcher connection failed", payment=PAYMENT
        )

        result = runner.invoke(cli, SUBMIT_ARGS, obj={})

        assert result.exit_code == 1
        assert "submission" in result.output
        assert "funds are spent" in result.output
        assert PAYMENT.tx_hash in result.output

    def test_unconfirmed_payment_reports_hash(self, runner, workflow):
        workflow.run.return_value = Failed(
            stage=Stage.PAYMENT,
            cause="Payment failed: no receipt",
            payment_tx_hash=PAYMENT.tx_hash,
        )

        result = runner.invoke(cli, SUBMIT_ARGS, obj={})

        assert result.exit_code == 1
        assert "broadcast but not confirmed" in result.output
        assert PAYMENT.tx_hash in result.output
        assert "No payment was made" not in result.output

    def test_unknown_proving_system(self, runner, workflow):
        result = runner.invoke(cli, SUBMIT_ARGS + ["--proving-system", "stark"], obj={})

        assert result.exit_code == 2
        workflow.run.assert_not_called()

    def test_password_env(self, runner, workflow, monkeypatch):
        monkeypatch.setenv("KEYSTORE_PASSWORD", "secret")
        workflow.run.return_value = Cancelled()

        runner.invoke(cli, SUBMIT_ARGS + ["--password-env", "KEYSTORE_PASSWORD", "--yes"], obj={})

        prompts = workflow.build.call_args.kwargs["prompts"]
        assert prompts.password("Enter keystore password: ") == "secret"
        assert prompts.confirm("pay?") is True

    def test_password_env_missing(self, runner, workflow, monkeypatch):
        monkeypatch.delenv("KEYSTORE_PASSWORD", raising=False)

        result = runner.invoke(cli, SUBMIT_ARGS + ["--password-env", "KEYSTORE_PASSWORD"], obj={})

        assert result.exit_code == 2
        workflow.run.assert_not_called()


class TestCLIPromptProvider:
    """Tests for CLIPromptProvider."""

    def test_falls_back_to_console(self):
        prompts = CLIPromptProvider()
        with patch("click.confirm", return_value=False) as confirm:
            assert prompts.confirm("pay?") is False
        confirm.assert_called_once()

    def test_console_password(self):
        prompts = CLIPromptProvider()
        with patch("click.prompt", return_value="pw") as prompt:
            assert prompts.password("Enter keystore password: ") == "pw"
        assert prompt.call_args.kwargs["hide_input"] is True


class TestOtherCommands:
    """Tests for nonce, chains and config."""

    def test_chains(self, runner):
        result = runner.invoke(cli, ["chains"], obj={})

        assert result.exit_code == 0
        assert "holesky" in result.output
        assert "17000" in result.output
        assert "31337" in result.output

    def test_config(self, runner):
        result = runner.invoke(cli, ["config"], obj={})

        assert result.exit_code == 0
        assert "wss://batcher.alignedlayer.com" in result.output
        assert "4000000000000000 wei" in result.output

    def test_nonce(self, runner):
        with patch.object(
            cli_module.ContractNonceCoordinator, "get_next_nonce", AsyncMock(return_value=9)
        ):
            result = runner.invoke(
                cli, ["nonce", "0x" + "1" * 40, "--rpc-url", "https://rpc.example.org"], obj={}
            )

        assert result.exit_code == 0
        assert ": 9" in result.output

    def test_nonce_failure(self, runner):
        with patch.object(
            cli_module.ContractNonceCoordinator,
            "get_next_nonce",
            AsyncMock(side_effect=NonceError("could not get nonce")),
        ):
            result = runner.invoke(
                cli, ["nonce", "0x" + "1" * 40, "--rpc-url", "https://rpc.example.org"], obj={}
            )

        assert result.exit_code == 1
        assert "could not get nonce" in result.output

    def test_nonce_invalid_address(self, runner):
        result = runner.invoke(cli, ["nonce", "0x1234", "--rpc-url", "https://rpc.example.org"], obj={})

        assert result.exit_code == 2
