#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# transport.py
#
# Byte pipes to the device. A transport moves one APDU out and one reply back,
# and refuses replies whose status word is not in the allowed list. It knows
# nothing about what the bytes mean; see session.py and client.py for that.
#
# If you have some other way to reach a device, subclass Transport and
# override these member functions:
#
#   - exchange, close
#
import asyncio, struct
import hid

from .constants import SW_OK
from .errors import TransportError
from .protocol import TonProtocolPacker, TonProtocolUnpacker
from .utils import B2A

LEDGER_VID = 0x2c97

# HID framing, as used by every Ledger device
HID_PACKET_SIZE = 64
HID_CHANNEL     = 0x0101
HID_TAG_APDU    = 0x05
HID_USAGE_PAGE  = 0xffa0


class Transport:
    verbose = False

    async def exchange(self, apdu):
        # send one complete APDU, return the raw reply (status word included)
        raise NotImplementedError

    async def close(self):
        pass

    async def send(self, cla, ins, p1=0, p2=0, data=b'', allowed=(SW_OK,)):
        apdu = TonProtocolPacker.apdu(cla, ins, p1, p2, data)

        if self.verbose:
            print("Tx [%3d]: %s" % (len(apdu), B2A(apdu)))

        resp = bytes(await self.exchange(apdu))

        if self.verbose:
            print("Rx [%3d]: %s" % (len(resp), B2A(resp)))

        return TonProtocolUnpacker.check_status(resp, allowed)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()


def wrap_apdu(apdu, channel=HID_CHANNEL, packet_size=HID_PACKET_SIZE):
    # each packet: channel(2) tag(1) seq(2) payload; first payload starts with total length(2)
    data = struct.pack('>H', len(apdu)) + bytes(apdu)
    packets = []
    offset = 0
    seq = 0
    while offset < len(data):
        hdr = struct.pack('>HBH', channel, HID_TAG_APDU, seq)
        here = data[offset:offset + packet_size - len(hdr)]
        packets.append((hdr + here).ljust(packet_size, b'\0'))
        offset += len(here)
        seq += 1

    return packets

def unwrap_response(read_packet, channel=HID_CHANNEL):
    # read_packet() gives the next raw HID report; returns the reassembled reply
    resp = b''
    expect = None
    seq = 0
    while expect is None or len(resp) < expect:
        buf = bytes(read_packet())
        if len(buf) < 5:
            raise TransportError('Timeout reading from device')

        ch, tag, sq = struct.unpack_from('>HBH', buf, 0)
        if ch != channel or tag != HID_TAG_APDU or sq != seq:
            raise TransportError('Bad HID framing: channel 0x%04x tag 0x%02x seq %d' % (ch, tag, sq))

        if seq == 0:
            expect = struct.unpack_from('>H', buf, 5)[0]
            resp += buf[7:]
        else:
            resp += buf[5:]
        seq += 1

    return resp[0:expect]


class HIDTransport(Transport):
    # A Ledger attached over USB, via hidapi. Blocking HID calls run in the
    # default executor so the event loop is never held up.

    def __init__(self, path=None, dev=None, verbose=False, timeout_ms=0):
        if not dev:
            for info in hid.enumerate(LEDGER_VID, 0):
                if path and info['path'] != path:
                    continue

                # only the generic HID interface speaks APDU
                if info.get('interface_number', 0) > 0 \
                        and info.get('usage_page') != HID_USAGE_PAGE:
                    continue

                dev = hid.device()
                dev.open_path(info['path'])
                break

            if not dev:
                raise TransportError('Could not find a Ledger device' if not path
                                        else ('Cannot find Ledger at: %r' % path))

        self.dev = dev
        self.verbose = verbose
        self.timeout_ms = timeout_ms

    def _exchange_sync(self, apdu):
        for pkt in wrap_apdu(apdu):
            # leading zero is the HID report number
            rv = self.dev.write(b'\0' + pkt)
            if rv < 0:
                raise TransportError('USB write failed')

        return unwrap_response(lambda: self.dev.read(HID_PACKET_SIZE, self.timeout_ms))

    async def exchange(self, apdu):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._exchange_sync, apdu)

    async def close(self):
        if self.dev is not None:
            self.dev.close()
            self.dev = None


class SpeculosTransport(Transport):
    # Use the TCP APDU port of the Speculos emulator instead of a real device.
    # - out: length(4, BE) + APDU
    # - in: length(4, BE) + data + status word(2)

    def __init__(self, host='127.0.0.1', port=9999, verbose=False):
        self.host = host
        self.port = port
        self.verbose = verbose
        self._reader = None
        self._writer = None

    async def _connect(self):
        if self._writer is not None:
            return
        try:
            self._reader, self._writer = await asyncio.open_connection(self.host, self.port)
        except OSError as exc:
            raise TransportError('Cannot connect to emulator at %s:%d. Is it running? (%s)'
                                    % (self.host, self.port, exc))

    async def exchange(self, apdu):
        await self._connect()
        try:
            self._writer.write(struct.pack('>I', len(apdu)) + bytes(apdu))
            await self._writer.drain()

            size = struct.unpack('>I', await self._reader.readexactly(4))[0]
            data = await self._reader.readexactly(size)
            sw = await self._reader.readexactly(2)
        except (OSError, asyncio.IncompleteReadError) as exc:
            # link is unusable now; next exchange reconnects
            self._writer.close()
            self._reader = self._writer = None
            raise TransportError('Emulator link failed: %s' % exc)

        return data + sw

    async def close(self):
        if self._writer is not None:
            self._writer.close()
            await self._writer.wait_closed()
            self._writer = None
            self._reader = None

# EOF
