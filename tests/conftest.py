import pytest
from ecdsa import SigningKey
from ecdsa.curves import Ed25519

from tonledger.cell import Address, begin_cell
from tonledger.constants import INS_ADDRESS, INS_PROOF, INS_SIGN_TX, INS_SIGN_DATA, P2_LAST
from tonledger.messages import *
from tonledger.transport import Transport


class FakeTransport(Transport):
    # Stand-in for the device: either a handler(apdu) => raw reply, or a
    # list of canned raw replies (status word included) used in order.

    def __init__(self, handler=None, replies=None):
        self.handler = handler
        self.replies = list(replies or [])
        self.sent = []
        self.closed = False

    async def exchange(self, apdu):
        self.sent.append(bytes(apdu))
        if self.handler is not None:
            return self.handler(apdu)
        return self.replies.pop(0)

    async def close(self):
        self.closed = True


def ok(data=b''):
    return bytes(data) + b'\x90\x00'


def sig_reply(sig, digest):
    # [sig len][signature][hash len][hash]
    return b'\x40' + sig + b'\x20' + digest


class FakeDevice:
    # Answers address requests with its key and the final step of any
    # signing flow with a canned reply.

    def __init__(self, public_key, final=b''):
        self.public_key = public_key
        self.final = final

    def __call__(self, apdu):
        ins, p2 = apdu[1], apdu[3]
        if ins == INS_ADDRESS:
            return ok(self.public_key)
        if ins == INS_PROOF or (ins in (INS_SIGN_TX, INS_SIGN_DATA) and p2 == P2_LAST):
            return ok(self.final)
        return ok()


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def device_key():
    # fixed ed25519 key the fake device signs with
    return SigningKey.from_string(bytes(range(32)), curve=Ed25519)


@pytest.fixture
def public_key(device_key):
    return device_key.get_verifying_key().to_string()


ADDR_A = Address(0, bytes(range(32)))
ADDR_B = Address(-1, bytes(range(100, 132)))


def _cell(*chunks):
    b = begin_cell()
    for c in chunks:
        b.store_buffer(c)
    return b.end_cell()


@pytest.fixture
def addr_a():
    return ADDR_A


@pytest.fixture
def addr_b():
    return ADDR_B


@pytest.fixture
def sample_intents():
    # one or more of every intent, all in canonical form
    custom = _cell(b'custom')
    fwd = begin_cell().store_uint(0, 32).store_buffer(b'fwd').end_cell()
    key = b'\x01' * 32

    return [
        Comment('hello'),
        Comment(''),
        JettonTransfer(123, 10**9, ADDR_A, ADDR_B, custom, 5, fwd),
        JettonTransfer(None, 1, ADDR_A, ADDR_A),
        NftTransfer(7, ADDR_A, ADDR_B, None, 1, fwd),
        NftTransfer(None, ADDR_B, ADDR_A, custom, 0, None),
        JettonBurn(1, 100, ADDR_A),
        JettonBurn(1, 100, ADDR_A, custom),
        JettonBurn(None, 100, ADDR_A, bytes(range(20))),
        AddWhitelist(9, ADDR_A),
        SingleNominatorWithdraw(None, 5 * 10**9),
        SingleNominatorChangeValidator(3, ADDR_B),
        TonstakersDeposit(4),
        TonstakersDeposit(4, 99),
        VoteForProposal(5, ADDR_A, 1700000000, True, False),
        VoteForProposal(None, ADDR_B, 0, False, True),
        ChangeDnsRecord(6, DnsWalletRecord(DnsWalletValue(ADDR_A, DnsCapabilities(True)))),
        ChangeDnsRecord(6, DnsWalletRecord(DnsWalletValue(ADDR_A, DnsCapabilities(False)))),
        ChangeDnsRecord(6, DnsWalletRecord(DnsWalletValue(ADDR_B))),
        ChangeDnsRecord(None, DnsWalletRecord(None)),
        ChangeDnsRecord(1, DnsUnknownRecord(key, custom)),
        ChangeDnsRecord(1, DnsUnknownRecord(key, None)),
        TokenBridgePaySwap(2, bytes(range(32))),
    ]
