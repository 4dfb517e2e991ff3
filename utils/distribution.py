import asyncio
import enum
import logging
import random
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Awaitable, Callable, Iterable, Optional

from eth_account import Account
from web3 import Web3
from web3.exceptions import TransactionNotFound

from .retry import RetryExecutor

logger = logging.getLogger(__name__)


def to_base_units(amount, decimals: int) -> int:
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def from_base_units(amount: int, decimals: int) -> Decimal:
    return Decimal(int(amount)) / (Decimal(10) ** decimals)


class TransferStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TransferRequest:
    sender: str
    recipient: str
    amount: int  # base units
    display_amount: Decimal


@dataclass
class TransferOutcome:
    request: TransferRequest
    tx_hash: str
    status: TransferStatus = TransferStatus.PENDING
    block_number: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BalanceCheck:
    address: str
    balance: Optional[int]
    eligible: bool
    error: Optional[str] = None


class Reporter:
    """
    Hooks the orchestrator calls as the run progresses. The base class ignores
    everything; console and test reporters override what they need.
    """

    def retrying(self, attempt: int, max_attempts: int, error: BaseException) -> None:
        pass

    def wallet_started(self, address: str) -> None:
        pass

    def balance_unavailable(self, check: BalanceCheck) -> None:
        pass

    def wallet_ineligible(self, check: BalanceCheck) -> None:
        pass

    def wallet_eligible(self, check: BalanceCheck) -> None:
        pass

    def recipient_generated(self, index: int, request: TransferRequest) -> None:
        pass

    def transfer_submitted(self, index: int, outcome: TransferOutcome) -> None:
        pass

    def transfer_failed(self, index: int, request: Optional[TransferRequest], error: BaseException) -> None:
        pass

    def transfer_resolved(self, index: int, outcome: TransferOutcome) -> None:
        pass

    def wallet_finished(self, address: str) -> None:
        pass

    def run_finished(self) -> None:
        pass


class BalanceGate:
    def __init__(self, token, executor: RetryExecutor, min_balance: int):
        self.token = token
        self.executor = executor
        self.min_balance = int(min_balance)

    async def check(self, wallet) -> BalanceCheck:
        address = wallet.address
        try:
            balance = await self.executor.run(lambda: self.token.functions.balanceOf(address).call())
        except Exception as e:
            logger.debug("balanceOf(%s) failed after retries: %s", address, e)
            return BalanceCheck(address=address, balance=None, eligible=False, error=str(e))
        balance = int(balance)
        return BalanceCheck(address=address, balance=balance, eligible=balance >= self.min_balance)


class RecipientGenerator:
    """
    Fresh recipient address plus a random amount in [amount_min, amount_max],
    rounded to `precision` fractional digits before scaling to base units.
    """

    def __init__(self, amount_min, amount_max, decimals: int = 18, precision: int = 6, rng: Optional[random.Random] = None):
        self.amount_min = Decimal(str(amount_min))
        self.amount_max = Decimal(str(amount_max))
        if self.amount_min > self.amount_max:
            raise ValueError("amount_min must not exceed amount_max")
        self.decimals = decimals
        self.quantum = Decimal(1).scaleb(-precision)
        self.rng = rng or random.SystemRandom()

    def new_address(self) -> str:
        return Account.create().address

    def random_amount(self) -> Decimal:
        raw = self.rng.uniform(float(self.amount_min), float(self.amount_max))
        amount = Decimal(str(raw)).quantize(self.quantum, rounding=ROUND_HALF_UP)
        # float rounding must not push the value outside the configured range
        return min(max(amount, self.amount_min), self.amount_max).quantize(self.quantum)

    def next_request(self, sender: str) -> TransferRequest:
        display_amount = self.random_amount()
        return TransferRequest(
            sender=sender,
            recipient=self.new_address(),
            amount=to_base_units(display_amount, self.decimals),
            display_amount=display_amount,
        )


class TransferDispatcher:
    def __init__(self, w3, token, executor: RetryExecutor, chain_id: int):
        self.w3 = w3
        self.token = token
        self.executor = executor
        self.chain_id = int(chain_id)

    async def _send(self, wallet, request: TransferRequest, nonce: int) -> str:
        tx = await self.token.functions.transfer(
            Web3.to_checksum_address(request.recipient), int(request.amount)
        ).build_transaction({
            "from": wallet.address,
            "chainId": self.chain_id,
            "nonce": nonce,
        })
        signed = wallet.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def dispatch(self, wallet, request: TransferRequest) -> TransferOutcome:
        # one nonce per transfer: a resend after a lost response replaces, never duplicates
        nonce = await self.executor.run(lambda: self.w3.eth.get_transaction_count(wallet.address, "pending"))
        tx_hash = await self.executor.run(lambda: self._send(wallet, request, nonce))
        return TransferOutcome(request=request, tx_hash=tx_hash)


class ConfirmationPoller:
    """
    Looks a transaction's receipt up a bounded number of times. It does not
    wait for inclusion beyond what the executor's attempts allow.
    """

    def __init__(self, w3, executor: RetryExecutor):
        self.w3 = w3
        self.executor = executor

    async def _lookup(self, tx_hash: str):
        receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        if receipt is None:
            raise TransactionNotFound(f"Transaction with hash {tx_hash!r} not found.")
        return receipt

    async def poll(self, outcome: TransferOutcome) -> TransferOutcome:
        try:
            receipt = await self.executor.run(lambda: self._lookup(outcome.tx_hash))
        except TransactionNotFound:
            outcome.status = TransferStatus.UNKNOWN
            return outcome
        except Exception as e:
            outcome.status = TransferStatus.UNKNOWN
            outcome.error = str(e)
            return outcome

        outcome.block_number = receipt.get("blockNumber")
        if receipt.get("status") == 1:
            outcome.status = TransferStatus.CONFIRMED
        else:
            outcome.status = TransferStatus.REVERTED
        return outcome


class BatchOrchestrator:
    """
    Drives the distribution: one wallet at a time, balance gate first, then
    `transaction_count` iterations of generate, dispatch, pause, poll. A failed
    iteration is reported and the loop moves on.
    """

    def __init__(
        self,
        gate: BalanceGate,
        generator: RecipientGenerator,
        dispatcher: TransferDispatcher,
        poller: ConfirmationPoller,
        reporter: Optional[Reporter] = None,
        confirmation_pause: float = 0.01,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.gate = gate
        self.generator = generator
        self.dispatcher = dispatcher
        self.poller = poller
        self.reporter = reporter or Reporter()
        self.confirmation_pause = confirmation_pause
        self._sleep = sleep

    async def run(self, wallets: Iterable, transaction_count: int) -> None:
        if isinstance(transaction_count, bool) or not isinstance(transaction_count, int) or transaction_count < 0:
            raise ValueError(f"transaction_count must be a non-negative integer, got {transaction_count!r}")
        for wallet in wallets:
            await self.process_wallet(wallet, transaction_count)
        self.reporter.run_finished()

    async def process_wallet(self, wallet, transaction_count: int) -> None:
        self.reporter.wallet_started(wallet.address)
        check = await self.gate.check(wallet)
        if check.balance is None:
            self.reporter.balance_unavailable(check)
            return
        if not check.eligible:
            self.reporter.wallet_ineligible(check)
            return
        self.reporter.wallet_eligible(check)

        for index in range(1, transaction_count + 1):
            await self._transfer_once(wallet, index)
        self.reporter.wallet_finished(wallet.address)

    async def _transfer_once(self, wallet, index: int) -> None:
        request = None
        try:
            request = self.generator.next_request(wallet.address)
            self.reporter.recipient_generated(index, request)
            outcome = await self.dispatcher.dispatch(wallet, request)
        except Exception as e:
            self.reporter.transfer_failed(index, request, e)
            return

        self.reporter.transfer_submitted(index, outcome)
        try:
            await self._sleep(self.confirmation_pause)
            outcome = await self.poller.poll(outcome)
        except Exception as e:
            outcome.status = TransferStatus.UNKNOWN
            outcome.error = str(e)
        self.reporter.transfer_resolved(index, outcome)
