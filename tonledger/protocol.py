#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Details of the APDU level protocol spoken by the TON app.
#
# - every request is: CLA INS P1 P2 Lc data (Lc <= 255)
# - every response ends with a 2-byte status word, 0x9000 is success
# - integers inside request bodies are big-endian, always
#
from struct import pack, unpack_from
from collections import namedtuple

from .constants import (
    MAX_CHUNK_LEN, SW_OK, SIGNATURE_LEN, HASH_LEN, DEFAULT_SUBWALLET_ID,
)
from .errors import (
    TonLedgerError, DecodeError, ShapeError, TransportError, IntegrityError,
    HashMismatchError, BadSignatureError,
)
from .utils import (
    path_to_bytes, write_uint8, write_uint16, write_uint32, write_uint64, write_varuint,
    write_address,
)


AppInfo = namedtuple('AppInfo', 'name version')
Settings = namedtuple('Settings', 'blind_signing_enabled expert_mode')
SignatureResponse = namedtuple('SignatureResponse', 'signature hash')


class TonProtocolPacker:
    # Build binary request bodies (and the APDU around them).

    @staticmethod
    def apdu(cla, ins, p1=0, p2=0, data=b''):
        data = bytes(data)
        if len(data) > MAX_CHUNK_LEN:
            raise ShapeError('APDU data too long: %d bytes' % len(data))
        return pack('>BBBBB', cla, ins, p1, p2, len(data)) + data

    @staticmethod
    def address_proof(path, domain, timestamp, payload):
        domain = domain.encode('utf-8')
        if len(domain) > 255:
            raise ShapeError('Domain too long')

        return path_to_bytes(path) + write_uint8(len(domain)) + domain \
                    + write_uint64(timestamp) + bytes(payload)

    @staticmethod
    def sign_data(schema, timestamp, data):
        # common part is also what the signature covers, with the hash appended
        return write_uint32(schema) + write_uint64(timestamp) + data

    @staticmethod
    def transaction(seqno, timeout, amount, to, bounce, send_mode,
                        state_init=None, payload=None, hints=b'\x00', wallet_specifiers=None):
        # state_init/payload are cells: only their depth and hash go on the wire
        if wallet_specifiers is None:
            rv = write_uint8(0)
        else:
            subwallet_id = wallet_specifiers.subwallet_id
            if subwallet_id is None:
                subwallet_id = DEFAULT_SUBWALLET_ID
            rv = write_uint8(1) + write_uint32(subwallet_id) \
                    + write_uint8(1 if wallet_specifiers.include_wallet_op else 0)

        rv += write_uint32(seqno) + write_uint32(timeout) + write_varuint(amount) \
                + write_address(to) + write_uint8(1 if bounce else 0) + write_uint8(send_mode)

        if state_init is not None:
            rv += write_uint8(1) + write_uint16(state_init.depth) + state_init.hash
        else:
            rv += write_uint8(0)

        if payload is not None:
            rv += write_uint8(1) + write_uint16(payload.depth) + payload.hash + hints
        else:
            rv += write_uint8(0) + write_uint8(0)

        return rv


class TonProtocolUnpacker:
    # Take a binary response (status word already removed) and turn it into
    # a python object. Each layout is specific to one command.

    @staticmethod
    def split_status(resp):
        if len(resp) < 2:
            raise TransportError('Response too short: %d bytes' % len(resp))
        return resp[:-2], unpack_from('>H', resp, len(resp)-2)[0]

    @staticmethod
    def check_status(resp, allowed=(SW_OK,)):
        # what a transport does with each raw reply
        _, sw = TonProtocolUnpacker.split_status(resp)
        if sw not in allowed:
            raise TransportError.from_status(sw)
        return resp

    @staticmethod
    def current_app(data):
        # format byte, then length-prefixed name and version
        try:
            if data[0] != 0x01:
                raise TransportError('Invalid response')
            nlen = data[1]
            name = data[2:2+nlen]
            vlen = data[2+nlen]
            version = data[3+nlen:3+nlen+vlen]
        except IndexError:
            raise TransportError('Invalid response')

        return AppInfo(name.decode('ascii', 'replace'), version.decode('ascii', 'replace'))

    @staticmethod
    def version(data):
        if len(data) < 3:
            raise TransportError('Invalid response')
        return '%d.%d.%d' % tuple(data[0:3])

    @staticmethod
    def settings(data):
        if len(data) < 1:
            raise TransportError('Invalid response')
        return Settings(blind_signing_enabled=bool(data[0] & 0x01),
                        expert_mode=bool(data[0] & 0x02))

    @staticmethod
    def public_key(data):
        if len(data) != 32:
            raise TransportError('Invalid response: public key must be 32 bytes')
        return bytes(data)

    @staticmethod
    def signature(data):
        # [sig len][signature][hash len][hash]
        end = 2 + SIGNATURE_LEN + HASH_LEN
        if len(data) < end:
            raise IntegrityError('Signature response too short: %d bytes' % len(data))
        if data[0] != SIGNATURE_LEN or data[1+SIGNATURE_LEN] != HASH_LEN:
            raise IntegrityError('Signature response has bad length fields: %d, %d'
                                    % (data[0], data[1+SIGNATURE_LEN]))

        sig = bytes(data[1:1+SIGNATURE_LEN])
        digest = bytes(data[2+SIGNATURE_LEN:end])
        return SignatureResponse(sig, digest)

# EOF
