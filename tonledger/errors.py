#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Every failure we raise: decode, shape, transport or integrity.
#
from .constants import SW_DESCRIPTIONS


class TonLedgerError(RuntimeError):
    pass

class DecodeError(TonLedgerError):
    # message cell does not follow any grammar we know
    pass

class ShapeError(TonLedgerError, ValueError):
    # caller gave us something of the wrong size/shape; never retried
    pass

class TransportError(TonLedgerError):
    # device said no, or the link itself broke
    def __init__(self, msg, sw=None):
        super().__init__(msg)
        self.sw = sw

    @classmethod
    def from_status(cls, sw):
        desc = SW_DESCRIPTIONS.get(sw, 'Unknown error')
        return cls('Device error 0x%04x: %s' % (sw, desc), sw=sw)

class IntegrityError(TonLedgerError):
    # device response failed a local security check: do not trust it
    pass

class HashMismatchError(IntegrityError):
    def __init__(self, expected, got):
        super().__init__('Hash mismatch. Expected: %s, got: %s' % (expected.hex(), got.hex()))
        self.expected = expected
        self.got = got

class BadSignatureError(IntegrityError):
    pass

# EOF
