"""Submits transactions, self-paid or sponsored, and waits for effects.

Sponsorship changes only who pays and who submits; the operations and the
returned ``TransactionResponse`` are the same on both paths.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from siteforge.clients.protocols import LedgerClient, Signer, SponsorClient
from siteforge.models.ledger import TransactionResponse

logger = logging.getLogger(__name__)


class TransactionFailedError(RuntimeError):
    """Raised when the ledger confirms a transaction that aborted."""

    def __init__(self, digest: str, error: str | None) -> None:
        super().__init__(f"Transaction {digest} failed: {error or 'unknown error'}")
        self.digest = digest
        self.error = error


class TransactionExecutor:
    """Signs and submits transactions for one wallet address.

    Parameters
    ----------
    ledger:
        Ledger client used to build, execute and wait for transactions.
    signer:
        Produces the sender's signature.
    sponsor:
        Optional sponsor; when set, every transaction goes through it.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        signer: Signer,
        *,
        sponsor: SponsorClient | None = None,
    ) -> None:
        self._ledger = ledger
        self._signer = signer
        self._sponsor = sponsor

    @property
    def address(self) -> str:
        return self._signer.address

    @property
    def is_sponsored(self) -> bool:
        return self._sponsor is not None

    async def execute(
        self,
        transaction: Any,
        description: str,
        *,
        on_recorded: Callable[[str, str], object] | None = None,
    ) -> TransactionResponse:
        """Submit *transaction* and return its confirmed effects.

        *on_recorded* receives ``(digest, description)`` as soon as a digest
        exists: before waiting for effects and before the status is checked,
        so aborted or unconfirmed transactions are still recorded.
        """
        if self._sponsor is not None:
            response = await self._execute_sponsored(
                self._sponsor, transaction, description, on_recorded
            )
        else:
            response = await self._execute_regular(transaction, description, on_recorded)

        if not response.succeeded:
            raise TransactionFailedError(response.digest, response.error)
        return response

    async def _execute_regular(
        self,
        transaction: Any,
        description: str,
        on_recorded: Callable[[str, str], object] | None,
    ) -> TransactionResponse:
        logger.debug("Executing transaction: %s", description)
        tx_bytes = await self._ledger.build_transaction(transaction, sender=self.address)
        signature = await self._signer.sign_transaction(tx_bytes)
        response = await self._ledger.execute_transaction(tx_bytes, [signature])
        if on_recorded is not None:
            on_recorded(response.digest, description)
        logger.info("Executed %r -> %s", description, response.digest)
        return response

    async def _execute_sponsored(
        self,
        sponsor: SponsorClient,
        transaction: Any,
        description: str,
        on_recorded: Callable[[str, str], object] | None,
    ) -> TransactionResponse:
        logger.debug("Executing sponsored transaction: %s", description)
        kind_bytes = await self._ledger.build_transaction(
            transaction, sender=self.address, only_transaction_kind=True
        )
        sponsored_bytes, sponsor_digest = await sponsor.sponsor_transaction(
            kind_bytes, sender=self.address
        )
        signature = await self._signer.sign_transaction(sponsored_bytes)
        digest = await sponsor.execute_sponsored(sponsor_digest, signature)
        # Submitted from here on, even if the wait below fails.
        if on_recorded is not None:
            on_recorded(digest, description)
        response = await self._ledger.wait_for_transaction(digest)
        logger.info("Executed sponsored %r -> %s", description, response.digest)
        return response
