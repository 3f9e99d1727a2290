"""Data models for parsed Helius transactions.

These mirror the subset of the Helius parsed-transaction payload the
summarizer reads. Amounts that are smallest-unit integers upstream are
kept as ``int``; they are parsed through ``Decimal`` so large values never
round-trip through a float.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


def _to_int(value: Any) -> int:
    """Convert a JSON number or numeric string to an integer amount."""
    if isinstance(value, int):
        return value
    return int(Decimal(str(value)))


class TokenStandard(str, Enum):
    """Token standard reported for a token transfer."""

    FUNGIBLE = "Fungible"
    NON_FUNGIBLE = "NonFungible"
    PROGRAMMABLE_NON_FUNGIBLE = "ProgrammableNonFungible"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Any) -> TokenStandard:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_nft(self) -> bool:
        return self in (TokenStandard.NON_FUNGIBLE, TokenStandard.PROGRAMMABLE_NON_FUNGIBLE)


@dataclass(frozen=True)
class NativeTransfer:
    """A SOL transfer between two accounts, in lamports."""

    from_user_account: str
    to_user_account: str
    amount: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NativeTransfer:
        return cls(
            from_user_account=str(data["fromUserAccount"]),
            to_user_account=str(data["toUserAccount"]),
            amount=_to_int(data["amount"]),
        )


@dataclass(frozen=True)
class TokenTransfer:
    """A token transfer between two wallets.

    ``token_amount`` is the UI (decimal-adjusted) amount reported upstream;
    the summarizer never aggregates it, net amounts come from balance changes.
    """

    from_user_account: str
    to_user_account: str
    mint: str
    token_amount: Decimal
    token_standard: TokenStandard
    from_token_account: str = ""
    to_token_account: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenTransfer:
        return cls(
            from_user_account=str(data.get("fromUserAccount") or ""),
            to_user_account=str(data.get("toUserAccount") or ""),
            mint=str(data["mint"]),
            token_amount=Decimal(str(data.get("tokenAmount", 0))),
            token_standard=TokenStandard.parse(data.get("tokenStandard")),
            from_token_account=str(data.get("fromTokenAccount") or ""),
            to_token_account=str(data.get("toTokenAccount") or ""),
        )


@dataclass(frozen=True)
class RawTokenAmount:
    """Signed smallest-unit token amount with its decimals."""

    token_amount: int
    decimals: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawTokenAmount:
        return cls(
            token_amount=_to_int(data["tokenAmount"]),
            decimals=int(data.get("decimals", 0)),
        )


@dataclass(frozen=True)
class TokenBalanceChange:
    """Token balance change of one token account owned by ``user_account``."""

    user_account: str
    token_account: str
    mint: str
    raw_token_amount: RawTokenAmount

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenBalanceChange:
        return cls(
            user_account=str(data["userAccount"]),
            token_account=str(data.get("tokenAccount") or ""),
            mint=str(data["mint"]),
            raw_token_amount=RawTokenAmount.from_dict(data["rawTokenAmount"]),
        )


@dataclass(frozen=True)
class AccountData:
    """Net balance changes for a single account in a transaction."""

    account: str
    native_balance_change: int
    token_balance_changes: tuple[TokenBalanceChange, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountData:
        return cls(
            account=str(data["account"]),
            native_balance_change=_to_int(data.get("nativeBalanceChange", 0)),
            token_balance_changes=tuple(
                TokenBalanceChange.from_dict(c) for c in data.get("tokenBalanceChanges") or []
            ),
        )


@dataclass(frozen=True)
class Instruction:
    """A compiled instruction; ``data`` is the base58-encoded payload."""

    program_id: str
    accounts: tuple[str, ...]
    data: str
    inner_instructions: tuple[Instruction, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Instruction:
        return cls(
            program_id=str(data["programId"]),
            accounts=tuple(str(a) for a in data.get("accounts") or []),
            data=str(data.get("data") or ""),
            inner_instructions=tuple(
                cls.from_dict(i) for i in data.get("innerInstructions") or []
            ),
        )

    @staticmethod
    def flatten(instructions: Sequence[Instruction]) -> Iterator[Instruction]:
        """Yield top-level instructions, then every inner instruction."""
        yield from instructions
        for instruction in instructions:
            yield from instruction.inner_instructions


@dataclass(frozen=True)
class CompressedNftEvent:
    """Leaf ownership change of a compressed NFT."""

    asset_id: str
    old_leaf_owner: str
    new_leaf_owner: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompressedNftEvent:
        return cls(
            asset_id=str(data["assetId"]),
            old_leaf_owner=str(data.get("oldLeafOwner") or ""),
            new_leaf_owner=str(data.get("newLeafOwner") or ""),
        )


@dataclass(frozen=True)
class RawTransaction:
    """A parsed transaction as returned by the Helius transaction history API."""

    signature: str
    fee_payer: str
    fee: int
    timestamp: int
    source: str = "UNKNOWN"
    description: str = ""
    success: bool = True
    native_transfers: tuple[NativeTransfer, ...] = ()
    token_transfers: tuple[TokenTransfer, ...] = ()
    account_data: tuple[AccountData, ...] = ()
    instructions: tuple[Instruction, ...] = ()
    compressed_events: tuple[CompressedNftEvent, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawTransaction:
        """Create a RawTransaction from a Helius parsed-transaction payload.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If a numeric field cannot be parsed.
        """
        events = data.get("events") or {}
        return cls(
            signature=str(data["signature"]),
            fee_payer=str(data["feePayer"]),
            fee=_to_int(data.get("fee", 0)),
            timestamp=_to_int(data["timestamp"]),
            source=str(data.get("source") or "UNKNOWN"),
            description=str(data.get("description") or ""),
            success=data.get("transactionError") is None,
            native_transfers=tuple(
                NativeTransfer.from_dict(t) for t in data.get("nativeTransfers") or []
            ),
            token_transfers=tuple(
                TokenTransfer.from_dict(t) for t in data.get("tokenTransfers") or []
            ),
            account_data=tuple(AccountData.from_dict(a) for a in data.get("accountData") or []),
            instructions=tuple(Instruction.from_dict(i) for i in data.get("instructions") or []),
            compressed_events=tuple(
                CompressedNftEvent.from_dict(e) for e in events.get("compressed") or []
            ),
        )

    def account_data_for(self, address: str) -> AccountData | None:
        """Return the balance-change record for ``address``, if any."""
        for account_data in self.account_data:
            if account_data.account == address:
                return account_data
        return None
