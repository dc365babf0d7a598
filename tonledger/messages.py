#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# The closed set of message intents we know how to show on the device.
#
# - one frozen dataclass per intent; equality includes the class
# - query ids are None when the wire value is zero
# - anything we can't classify is carried as Unsafe(message), which the
#   device renders as a blind-signing warning
#
from dataclasses import dataclass
from typing import Optional, Union

from .cell import Cell, Address


@dataclass(frozen=True)
class Unsafe:
    message: Cell

@dataclass(frozen=True)
class Comment:
    text: str

@dataclass(frozen=True)
class JettonTransfer:
    query_id: Optional[int]
    amount: int
    destination: Address
    response_destination: Address
    custom_payload: Optional[Cell] = None
    forward_amount: int = 0
    forward_payload: Optional[Cell] = None

@dataclass(frozen=True)
class NftTransfer:
    query_id: Optional[int]
    new_owner: Address
    response_destination: Address
    custom_payload: Optional[Cell] = None
    forward_amount: int = 0
    forward_payload: Optional[Cell] = None

@dataclass(frozen=True)
class JettonBurn:
    query_id: Optional[int]
    amount: int
    response_destination: Address
    # bytes when it held a 20-byte (ethereum style) address
    custom_payload: Union[Cell, bytes, None] = None

@dataclass(frozen=True)
class AddWhitelist:
    query_id: Optional[int]
    address: Address

@dataclass(frozen=True)
class SingleNominatorWithdraw:
    query_id: Optional[int]
    amount: int

@dataclass(frozen=True)
class SingleNominatorChangeValidator:
    query_id: Optional[int]
    address: Address

@dataclass(frozen=True)
class TonstakersDeposit:
    query_id: Optional[int]
    app_id: Optional[int] = None

@dataclass(frozen=True)
class VoteForProposal:
    query_id: Optional[int]
    voting_address: Address
    expiration_date: int
    vote: bool
    need_confirmation: bool


@dataclass(frozen=True)
class DnsCapabilities:
    is_wallet: bool = False

@dataclass(frozen=True)
class DnsWalletValue:
    address: Address
    capabilities: Optional[DnsCapabilities] = None

@dataclass(frozen=True)
class DnsWalletRecord:
    value: Optional[DnsWalletValue] = None

@dataclass(frozen=True)
class DnsUnknownRecord:
    key: bytes
    value: Optional[Cell] = None

@dataclass(frozen=True)
class ChangeDnsRecord:
    query_id: Optional[int]
    record: Union[DnsWalletRecord, DnsUnknownRecord]


@dataclass(frozen=True)
class TokenBridgePaySwap:
    query_id: Optional[int]
    swap_id: bytes


# every intent; parser and encoder both check they cover all of these
ALL_INTENTS = (
    Unsafe, Comment, JettonTransfer, NftTransfer, JettonBurn, AddWhitelist,
    SingleNominatorWithdraw, SingleNominatorChangeValidator, TonstakersDeposit,
    VoteForProposal, ChangeDnsRecord, TokenBridgePaySwap,
)

# EOF
