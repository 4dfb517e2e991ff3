import os, sys, csv, asyncio, logging
from typing import Dict, List

from rich.console import Console
from rich.logging import RichHandler

from utils.distribution import BalanceGate, from_base_units, to_base_units
from utils.helper import Web3Helper, ask_token_address, ensure_dir, load_funding_wallets, select_chain_config
from utils.retry import RetryExecutor, RetryPolicy

import config

console = Console()

CSV_HEADERS = ["wallet_number", "wallet", "raw", "formatted", "eligible", "error"]


class BalanceChecker:
    """
    Report every funding wallet's token balance and whether it clears the
    distribution threshold.
    - Wallets come from the JSON private keys file (config.PRIVATE_KEYS_FILE)
    - Balances are read with the same BalanceGate and retry policy the
      distribution run uses
    - Exports results to result/checkBalance_<chain>_result.csv
    """

    def __init__(self, chain_config, console: Console = console):
        self.console = console
        self.chain_config = chain_config
        self.chain_name = chain_config.CHAIN_NAME

        logging.basicConfig(level=config.LOG_LEVEL, handlers=[RichHandler(console=self.console)])
        self.logger = logging.getLogger(__name__)

        self.web3h = Web3Helper(chain_config)
        self.policy = RetryPolicy(max_attempts=config.RETRY_MAX_ATTEMPTS, delay=config.RETRY_DELAY)
        self.decimals = config.TOKEN_DECIMALS

    def build_gate(self, token_address: str) -> BalanceGate:
        executor = RetryExecutor(self.policy)
        token = self.web3h.token_contract(token_address)
        return BalanceGate(token, executor, min_balance=to_base_units(config.MIN_TOKEN_BALANCE, self.decimals))

    async def collect_balances(self, gate: BalanceGate, wallets: list) -> List[Dict]:
        rows = []
        for idx, wallet in enumerate(wallets, start=1):
            check = await gate.check(wallet)
            rows.append({
                "wallet_number": idx,
                "wallet": check.address,
                "raw": "" if check.balance is None else str(check.balance),
                "formatted": "N/A" if check.balance is None else f"{from_base_units(check.balance, self.decimals):.6f}",
                "eligible": "yes" if check.eligible else "no",
                "error": check.error or "",
            })
        return rows

    def export_csv(self, rows, out_path: str) -> str:
        with open(out_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_HEADERS)
            writer.writeheader()
            for r in rows:
                writer.writerow({k: r.get(k, "") for k in CSV_HEADERS})
        return out_path

    async def run(self, wallets: list, token_address: str) -> List[Dict]:
        self.console.rule("[bold cyan]Fetching balances")
        try:
            rows = await self.collect_balances(self.build_gate(token_address), wallets)
        finally:
            await self.web3h.close()

        self.console.rule("[bold cyan]Wallet Balance")
        for r in rows:
            color = "green" if r["eligible"] == "yes" else "red"
            self.console.log(f"{r['wallet_number']:>2}. {r['wallet']} | {r['formatted']} | [{color}]eligible: {r['eligible']}[/{color}]")

        result_dir = ensure_dir(config.RESULT_PATH)
        name = self.chain_name.lower().replace(" ", "_")
        saved = self.export_csv(rows, os.path.join(result_dir, f"checkBalance_{name}_result.csv"))
        self.console.log(f"[bold green]Exported CSV:[/bold green] {saved}")
        return rows


def main():
    try:
        chain_config = select_chain_config()
        app = BalanceChecker(chain_config)
        wallets = load_funding_wallets(config.PRIVATE_KEYS_FILE)
        token_address = ask_token_address()
        asyncio.run(app.run(wallets, token_address))
    except Exception as e:
        console.log(f"[bold red]An unexpected error occurred: {e}[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
