"""Summarization layer - Parsed transactions to human-meaningful events."""

from solana_activity.summarizer.classifier import summarize
from solana_activity.summarizer.events import (
    EventKind,
    KnownApp,
    ReceivedNft,
    ReceivedSol,
    ReceivedToken,
    SentNft,
    SentSol,
    SentToken,
    TransactionEvent,
    TransactionSummary,
)
from solana_activity.summarizer.models import RawTransaction, TokenStandard
from solana_activity.summarizer.rent import detect_rent_costs

__all__ = [
    "EventKind",
    "KnownApp",
    "RawTransaction",
    "ReceivedNft",
    "ReceivedSol",
    "ReceivedToken",
    "SentNft",
    "SentSol",
    "SentToken",
    "TokenStandard",
    "TransactionEvent",
    "TransactionSummary",
    "detect_rent_costs",
    "summarize",
]
