"""Tests for transaction summarization."""

import struct
from decimal import Decimal

import base58
import pytest

from solana_activity.summarizer.classifier import summarize
from solana_activity.summarizer.events import (
    KnownApp,
    ReceivedNft,
    ReceivedSol,
    ReceivedToken,
    SentNft,
    SentSol,
    SentToken,
)
from solana_activity.summarizer.models import (
    AccountData,
    CompressedNftEvent,
    Instruction,
    NativeTransfer,
    RawTokenAmount,
    RawTransaction,
    TokenBalanceChange,
    TokenStandard,
    TokenTransfer,
)
from solana_activity.summarizer.rent import SYSTEM_PROGRAM_ADDRESS

OBSERVED = "Obs1111111111111111111111111111111111111111"
ALICE = "A1ice111111111111111111111111111111111111111"
BOB = "Bob11111111111111111111111111111111111111111"
CAROL = "Caro1111111111111111111111111111111111111111"
MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
OTHER_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
NFT = "NFT11111111111111111111111111111111111111111"

FEE = 5000


def create_raw_transaction(
    *,
    fee_payer: str = OBSERVED,
    fee: int = FEE,
    source: str = "SYSTEM_PROGRAM",
    native_transfers: tuple[NativeTransfer, ...] = (),
    token_transfers: tuple[TokenTransfer, ...] = (),
    account_data: tuple[AccountData, ...] = (),
    instructions: tuple[Instruction, ...] = (),
    compressed_events: tuple[CompressedNftEvent, ...] = (),
) -> RawTransaction:
    """Create a RawTransaction for testing."""
    return RawTransaction(
        signature="5sig",
        fee_payer=fee_payer,
        fee=fee,
        timestamp=1_700_000_000,
        source=source,
        native_transfers=native_transfers,
        token_transfers=token_transfers,
        account_data=account_data,
        instructions=instructions,
        compressed_events=compressed_events,
    )


def create_account_instruction(new_account: str, lamports: int) -> Instruction:
    data = base58.b58encode(struct.pack("<IQQ32s", 0, lamports, 165, bytes(32))).decode()
    return Instruction(
        program_id=SYSTEM_PROGRAM_ADDRESS,
        accounts=(OBSERVED, new_account),
        data=data,
    )


def token_change(owner: str, mint: str, amount: int, decimals: int = 6) -> TokenBalanceChange:
    return TokenBalanceChange(
        user_account=owner,
        token_account=owner + "-ata",
        mint=mint,
        raw_token_amount=RawTokenAmount(token_amount=amount, decimals=decimals),
    )


def token_transfer(
    from_account: str,
    to_account: str,
    mint: str = MINT,
    standard: TokenStandard = TokenStandard.FUNGIBLE,
) -> TokenTransfer:
    return TokenTransfer(
        from_user_account=from_account,
        to_user_account=to_account,
        mint=mint,
        token_amount=Decimal("1"),
        token_standard=standard,
    )


class TestSolEvents:
    def test_single_send(self) -> None:
        tx = create_raw_transaction(
            native_transfers=(NativeTransfer(OBSERVED, BOB, 5_000_000),),
            account_data=(
                AccountData(OBSERVED, -5_000_000 - FEE),
                AccountData(BOB, 5_000_000),
            ),
        )
        summary = summarize(tx, OBSERVED)

        assert summary.events == (SentSol(lamports=5_000_000, to_addresses=(BOB,)),)

    def test_fee_only_emits_nothing(self) -> None:
        tx = create_raw_transaction(account_data=(AccountData(OBSERVED, -FEE),))
        assert summarize(tx, OBSERVED).events == ()

    def test_fee_not_added_when_not_payer(self) -> None:
        tx = create_raw_transaction(
            fee_payer=ALICE,
            native_transfers=(NativeTransfer(ALICE, OBSERVED, 1_000_000),),
            account_data=(
                AccountData(ALICE, -1_000_000 - FEE),
                AccountData(OBSERVED, 1_000_000),
            ),
        )
        assert summarize(tx, OBSERVED).events == (
            ReceivedSol(lamports=1_000_000, from_addresses=(ALICE,)),
        )

    def test_no_account_data_for_address(self) -> None:
        tx = create_raw_transaction(
            native_transfers=(NativeTransfer(ALICE, BOB, 1_000),),
            account_data=(AccountData(ALICE, -1_000 - FEE), AccountData(BOB, 1_000)),
        )
        assert summarize(tx, OBSERVED).events == ()

    def test_receive_collects_all_senders(self) -> None:
        tx = create_raw_transaction(
            fee_payer=ALICE,
            native_transfers=(
                NativeTransfer(ALICE, OBSERVED, 1_000),
                NativeTransfer(BOB, OBSERVED, 2_000),
                NativeTransfer(ALICE, BOB, 7),
            ),
            account_data=(AccountData(OBSERVED, 3_000),),
        )
        assert summarize(tx, OBSERVED).events == (
            ReceivedSol(lamports=3_000, from_addresses=(ALICE, BOB)),
        )

    def test_receive_falls_back_to_matching_balance_change(self) -> None:
        tx = create_raw_transaction(
            fee_payer=CAROL,
            account_data=(
                AccountData(CAROL, -FEE),
                AccountData(ALICE, -12_345),
                AccountData(OBSERVED, 12_345),
            ),
        )
        assert summarize(tx, OBSERVED).events == (
            ReceivedSol(lamports=12_345, from_addresses=(ALICE,)),
        )

    def test_receive_without_any_attribution(self) -> None:
        tx = create_raw_transaction(
            fee_payer=CAROL,
            account_data=(AccountData(OBSERVED, 500), AccountData(ALICE, -400)),
        )
        assert summarize(tx, OBSERVED).events == (ReceivedSol(lamports=500, from_addresses=()),)

    def test_rent_fully_absorbed(self) -> None:
        tx = create_raw_transaction(
            native_transfers=(NativeTransfer(OBSERVED, CAROL, 2_039_280),),
            account_data=(
                AccountData(OBSERVED, -2_039_280 - FEE),
                AccountData(CAROL, 2_039_280),
            ),
            instructions=(create_account_instruction(CAROL, 2_039_280),),
        )
        assert summarize(tx, OBSERVED).events == ()

    def test_rent_excluded_from_real_send(self) -> None:
        tx = create_raw_transaction(
            native_transfers=(
                NativeTransfer(OBSERVED, CAROL, 2_039_280),
                NativeTransfer(OBSERVED, BOB, 1_000_000),
            ),
            account_data=(AccountData(OBSERVED, -2_039_280 - 1_000_000 - FEE),),
            instructions=(create_account_instruction(CAROL, 2_039_280),),
        )
        assert summarize(tx, OBSERVED).events == (
            SentSol(lamports=1_000_000, to_addresses=(BOB,)),
        )

    def test_transfer_to_created_account_with_different_amount_is_real(self) -> None:
        tx = create_raw_transaction(
            native_transfers=(NativeTransfer(OBSERVED, CAROL, 3_000_000),),
            account_data=(AccountData(OBSERVED, -3_000_000 - FEE),),
            instructions=(create_account_instruction(CAROL, 2_039_280),),
        )
        assert summarize(tx, OBSERVED).events == (
            SentSol(lamports=3_000_000, to_addresses=(CAROL,)),
        )

    def test_rent_matching_other_recipient_is_not_rent(self) -> None:
        tx = create_raw_transaction(
            native_transfers=(NativeTransfer(OBSERVED, BOB, 2_039_280),),
            account_data=(AccountData(OBSERVED, -2_039_280 - FEE),),
            instructions=(create_account_instruction(CAROL, 2_039_280),),
        )
        assert summarize(tx, OBSERVED).events == (
            SentSol(lamports=2_039_280, to_addresses=(BOB,)),
        )


class TestTokenEvents:
    def test_receive_sums_balance_changes(self) -> None:
        tx = create_raw_transaction(
            fee_payer=ALICE,
            token_transfers=(token_transfer(ALICE, OBSERVED),),
            account_data=(
                AccountData(
                    "ata-1",
                    0,
                    (token_change(OBSERVED, MINT, 100), token_change(ALICE, MINT, -150)),
                ),
                AccountData("ata-2", 0, (token_change(OBSERVED, MINT, 50),)),
            ),
        )
        assert summarize(tx, OBSERVED).events == (
            ReceivedToken(mint=MINT, unit_amount=150, decimals=6, from_addresses=(ALICE,)),
        )

    def test_send_uses_absolute_amount_and_recipients(self) -> None:
        tx = create_raw_transaction(
            token_transfers=(
                token_transfer(OBSERVED, BOB),
                token_transfer(OBSERVED, CAROL),
            ),
            account_data=(
                AccountData("ata", 0, (token_change(OBSERVED, MINT, -2_500_000, decimals=9),)),
            ),
        )
        assert summarize(tx, OBSERVED).events == (
            SentToken(mint=MINT, unit_amount=2_500_000, decimals=9, to_addresses=(BOB, CAROL)),
        )

    def test_net_zero_emits_nothing(self) -> None:
        tx = create_raw_transaction(
            token_transfers=(token_transfer(OBSERVED, BOB), token_transfer(BOB, OBSERVED)),
            account_data=(
                AccountData("ata", 0, (token_change(OBSERVED, MINT, -10), token_change(OBSERVED, MINT, 10))),
            ),
        )
        assert summarize(tx, OBSERVED).events == ()

    def test_swap_emits_one_event_per_mint(self) -> None:
        tx = create_raw_transaction(
            source="JUPITER",
            token_transfers=(
                token_transfer(OBSERVED, ALICE, MINT),
                token_transfer(ALICE, OBSERVED, OTHER_MINT),
            ),
            account_data=(
                AccountData(
                    "ata",
                    0,
                    (token_change(OBSERVED, MINT, -1_000), token_change(OBSERVED, OTHER_MINT, 42, 5)),
                ),
            ),
        )
        summary = summarize(tx, OBSERVED)

        assert summary.events == (
            SentToken(mint=MINT, unit_amount=1_000, decimals=6, to_addresses=(ALICE,)),
            ReceivedToken(mint=OTHER_MINT, unit_amount=42, decimals=5, from_addresses=(ALICE,)),
        )
        assert summary.known_app is KnownApp.JUPITER

    def test_transfer_without_balance_change_ignored(self) -> None:
        tx = create_raw_transaction(token_transfers=(token_transfer(OBSERVED, BOB),))
        assert summarize(tx, OBSERVED).events == ()

    def test_other_owners_changes_ignored(self) -> None:
        tx = create_raw_transaction(
            account_data=(AccountData("ata", 0, (token_change(ALICE, MINT, 99),)),),
        )
        assert summarize(tx, OBSERVED).events == ()

    def test_large_amounts_stay_exact(self) -> None:
        amount = 2**63 + 12345
        tx = create_raw_transaction(
            account_data=(AccountData("ata", 0, (token_change(OBSERVED, MINT, amount, 9),)),),
        )
        (event,) = summarize(tx, OBSERVED).events
        assert isinstance(event, ReceivedToken)
        assert event.unit_amount == amount


class TestNftEvents:
    @pytest.mark.parametrize(
        "standard",
        [TokenStandard.NON_FUNGIBLE, TokenStandard.PROGRAMMABLE_NON_FUNGIBLE],
    )
    def test_received_nft(self, standard: TokenStandard) -> None:
        tx = create_raw_transaction(token_transfers=(token_transfer(ALICE, OBSERVED, NFT, standard),))
        assert summarize(tx, OBSERVED).events == (ReceivedNft(asset_id=NFT, from_address=ALICE),)

    def test_sent_nft(self) -> None:
        tx = create_raw_transaction(
            token_transfers=(token_transfer(OBSERVED, BOB, NFT, TokenStandard.NON_FUNGIBLE),)
        )
        assert summarize(tx, OBSERVED).events == (SentNft(asset_id=NFT, to_address=BOB),)

    def test_unknown_standard_ignored(self) -> None:
        tx = create_raw_transaction(
            token_transfers=(token_transfer(OBSERVED, BOB, NFT, TokenStandard.UNKNOWN),)
        )
        assert summarize(tx, OBSERVED).events == ()

    def test_compressed_sent(self) -> None:
        tx = create_raw_transaction(compressed_events=(CompressedNftEvent(NFT, OBSERVED, BOB),))
        assert summarize(tx, OBSERVED).events == (SentNft(asset_id=NFT, to_address=BOB),)

    def test_compressed_received_attributed_to_fee_payer(self) -> None:
        tx = create_raw_transaction(
            fee_payer=ALICE,
            compressed_events=(CompressedNftEvent(NFT, BOB, OBSERVED),),
        )
        assert summarize(tx, OBSERVED).events == (ReceivedNft(asset_id=NFT, from_address=ALICE),)

    def test_compressed_received_when_self_paid_has_no_sender(self) -> None:
        tx = create_raw_transaction(compressed_events=(CompressedNftEvent(NFT, BOB, OBSERVED),))
        assert summarize(tx, OBSERVED).events == (ReceivedNft(asset_id=NFT, from_address=None),)

    def test_compressed_self_transfer_ignored(self) -> None:
        tx = create_raw_transaction(compressed_events=(CompressedNftEvent(NFT, OBSERVED, OBSERVED),))
        assert summarize(tx, OBSERVED).events == ()


class TestSummary:
    def test_summary_fields(self) -> None:
        tx = create_raw_transaction(source="MAGIC_EDEN")
        summary = summarize(tx, OBSERVED)

        assert summary.success is True
        assert summary.fee_payer == OBSERVED
        assert summary.signature == "5sig"
        assert summary.timestamp == 1_700_000_000
        assert summary.known_app is KnownApp.MAGIC_EDEN

    def test_unknown_source_has_no_known_app(self) -> None:
        assert summarize(create_raw_transaction(source="UNKNOWN"), OBSERVED).known_app is None

    def test_event_order(self) -> None:
        tx = create_raw_transaction(
            fee_payer=ALICE,
            native_transfers=(NativeTransfer(ALICE, OBSERVED, 1_000),),
            token_transfers=(
                token_transfer(ALICE, OBSERVED, MINT),
                token_transfer(ALICE, OBSERVED, NFT, TokenStandard.NON_FUNGIBLE),
            ),
            account_data=(AccountData(OBSERVED, 1_000, (token_change(OBSERVED, MINT, 7),)),),
            compressed_events=(CompressedNftEvent("cnft", OBSERVED, BOB),),
        )
        kinds = [e.kind.value for e in summarize(tx, OBSERVED).events]
        assert kinds == ["received_sol", "received_nft", "received_token", "sent_nft"]

    def test_summarize_is_pure(self) -> None:
        tx = create_raw_transaction(
            native_transfers=(NativeTransfer(OBSERVED, BOB, 5_000_000),),
            account_data=(AccountData(OBSERVED, -5_000_000 - FEE),),
            instructions=(create_account_instruction(CAROL, 2_039_280),),
        )
        assert summarize(tx, OBSERVED) == summarize(tx, OBSERVED)

    def test_net_sol_matches_balance_change_minus_fee(self) -> None:
        tx = create_raw_transaction(
            native_transfers=(
                NativeTransfer(OBSERVED, BOB, 700_000),
                NativeTransfer(ALICE, OBSERVED, 200_000),
            ),
            account_data=(AccountData(OBSERVED, -500_000 - FEE),),
        )
        summary = summarize(tx, OBSERVED)

        received = sum(e.lamports for e in summary.events if isinstance(e, ReceivedSol))
        sent = sum(e.lamports for e in summary.events if isinstance(e, SentSol))
        assert received - sent == -500_000
