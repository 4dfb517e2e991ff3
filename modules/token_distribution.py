import os, sys, csv, time, asyncio, logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from utils.distribution import (
    BalanceCheck, BalanceGate, BatchOrchestrator, ConfirmationPoller, RecipientGenerator,
    Reporter, TransferDispatcher, TransferOutcome, TransferRequest, TransferStatus,
    from_base_units, to_base_units,
)
from utils.helper import (
    Web3Helper, ask_token_address, ask_transaction_count, ensure_dir,
    load_funding_wallets, select_chain_config,
)
from utils.retry import RetryExecutor, RetryPolicy

import config

console = Console()

CSV_HEADERS = ["index", "sender", "recipient", "amount", "tx_hash", "status", "block_number", "error"]


def display_header(console: Console = console) -> None:
    console.print(Panel.fit(
        "[bold cyan]Token Distributor[/bold cyan]\n"
        "[white]ERC20 transfers from funding wallets to freshly generated addresses[/white]",
        border_style="cyan",
    ))


class ConsoleReporter(Reporter):
    """
    Renders orchestrator events as rich console lines and appends every
    resolved transfer to a CSV file as it is reported.
    """

    def __init__(self, console: Console, chain_config, decimals: int = config.TOKEN_DECIMALS, csv_path: Optional[str] = None):
        self.console = console
        self.chain_config = chain_config
        self.decimals = decimals
        self.csv_path = csv_path
        if self.csv_path:
            with open(self.csv_path, "w", newline="", encoding="utf-8") as f:
                csv.DictWriter(f, fieldnames=CSV_HEADERS).writeheader()

    def _amount(self, request: TransferRequest) -> str:
        return f"{from_base_units(request.amount, self.decimals)}"

    def retrying(self, attempt, max_attempts, error):
        self.console.log(f"[yellow]Error occurred: {error}. Retrying... ({attempt}/{max_attempts})[/yellow]")

    def wallet_started(self, address):
        self.console.rule(f"[bold cyan]Processing transactions for address: {address}")

    def balance_unavailable(self, check: BalanceCheck):
        self.console.log(f"[red]Failed to check token balance for {check.address}. Skipping to next address.[/red]")

    def wallet_ineligible(self, check: BalanceCheck):
        self.console.log(
            f"[red]Insufficient or zero token balance ({from_base_units(check.balance, self.decimals)}). "
            f"Skipping to next address.[/red]"
        )

    def wallet_eligible(self, check: BalanceCheck):
        self.console.log(f"[green]Token balance:[/green] {from_base_units(check.balance, self.decimals)}")

    def recipient_generated(self, index, request: TransferRequest):
        self.console.print(f"\n[white]Generated address {index}: {request.recipient}[/white]")

    def transfer_submitted(self, index, outcome: TransferOutcome):
        request = outcome.request
        self.console.print(f"[white]Transaction {index}:[/white]")
        self.console.print(f"  Hash: [green]{outcome.tx_hash}[/green]")
        self.console.print(f"  From: [green]{request.sender}[/green]")
        self.console.print(f"  To: [green]{request.recipient}[/green]")
        self.console.print(f"  Amount: [green]{self._amount(request)}[/green] tokens")
        url = self.chain_config.tx_url(outcome.tx_hash)
        if url:
            self.console.print(f"  Explorer: [blue]{url}[/blue]")

    def transfer_failed(self, index, request, error):
        self.console.log(f"[red]Failed to send transaction {index}: {error}[/red]")

    def transfer_resolved(self, index, outcome: TransferOutcome):
        if outcome.status is TransferStatus.CONFIRMED:
            self.console.print("[green]Transaction Success![/green]")
            self.console.print(f"[green]  Block Number: {outcome.block_number}[/green]")
        elif outcome.status is TransferStatus.REVERTED:
            self.console.print("[red]Transaction FAILED[/red]")
        elif outcome.error:
            self.console.print(f"[red]Error checking transaction status: {outcome.error}[/red]")
        else:
            self.console.print("[yellow]Transaction is still pending after multiple retries.[/yellow]")
        self._append_row(index, outcome)

    def _append_row(self, index, outcome: TransferOutcome):
        if not self.csv_path:
            return
        request = outcome.request
        with open(self.csv_path, "a", newline="", encoding="utf-8") as f:
            csv.DictWriter(f, fieldnames=CSV_HEADERS).writerow({
                "index": index,
                "sender": request.sender,
                "recipient": request.recipient,
                "amount": self._amount(request),
                "tx_hash": outcome.tx_hash,
                "status": outcome.status.value,
                "block_number": "" if outcome.block_number is None else outcome.block_number,
                "error": outcome.error or "",
            })

    def wallet_finished(self, address):
        self.console.log(f"[green]Finished transactions for address: {address}[/green]")

    def run_finished(self):
        self.console.rule("[bold green]All transactions completed.")


class TokenDistributionManager:
    def __init__(self, chain_config, console: Console = console):
        self.console = console
        self.chain_config = chain_config
        self.chain_id = int(chain_config.CHAIN_ID)

        logging.basicConfig(level=config.LOG_LEVEL, handlers=[RichHandler(console=self.console)])
        self.logger = logging.getLogger(__name__)

        self.web3h = Web3Helper(chain_config)
        self.w3 = self.web3h.w3
        self.policy = RetryPolicy(max_attempts=config.RETRY_MAX_ATTEMPTS, delay=config.RETRY_DELAY)

    def result_csv_path(self) -> str:
        result_dir = ensure_dir(config.RESULT_PATH)
        stamp = time.strftime("%Y%m%d-%H%M%S")
        name = self.chain_config.CHAIN_NAME.lower().replace(" ", "_")
        return os.path.join(result_dir, f"distribution_{name}_{stamp}.csv")

    def build_orchestrator(self, token_address: str, reporter: Reporter) -> BatchOrchestrator:
        executor = RetryExecutor(self.policy, on_retry=reporter.retrying)
        token = self.web3h.token_contract(token_address)
        return BatchOrchestrator(
            gate=BalanceGate(token, executor, min_balance=to_base_units(config.MIN_TOKEN_BALANCE, config.TOKEN_DECIMALS)),
            generator=RecipientGenerator(
                config.AMOUNT_MIN, config.AMOUNT_MAX,
                decimals=config.TOKEN_DECIMALS, precision=config.AMOUNT_PRECISION,
            ),
            dispatcher=TransferDispatcher(self.w3, token, executor, chain_id=self.chain_id),
            poller=ConfirmationPoller(self.w3, executor),
            reporter=reporter,
            confirmation_pause=config.CONFIRMATION_PAUSE,
        )

    async def run(self, wallets: list, token_address: str, transaction_count: int) -> None:
        reporter = ConsoleReporter(self.console, self.chain_config, csv_path=self.result_csv_path())
        orchestrator = self.build_orchestrator(token_address, reporter)
        try:
            await orchestrator.run(wallets, transaction_count)
        finally:
            await self.web3h.close()
        self.console.log(f"[bold green]Results CSV:[/bold green] {reporter.csv_path}")


def main():
    display_header()
    try:
        chain_config = select_chain_config()
        console.log(f"[green]You have selected: {chain_config.CHAIN_NAME} ({chain_config.NETWORK_TYPE})[/green]")
        console.log(f"[green]RPC URL: {chain_config.RPC_URL}[/green]")
        console.log(f"[green]Chain ID: {chain_config.CHAIN_ID}[/green]")

        app = TokenDistributionManager(chain_config)
        wallets = load_funding_wallets(config.PRIVATE_KEYS_FILE)
        console.log(f"[green]Loaded {len(wallets)} funding wallet(s).[/green]")
        token_address = ask_token_address()
        transaction_count = ask_transaction_count()

        asyncio.run(app.run(wallets, token_address, transaction_count))
    except Exception as e:
        console.log(f"[bold red]An unexpected error occurred: {e}[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
