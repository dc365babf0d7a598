#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# One logical conversation with the device.
#
# - the link is half-duplex: exactly one APDU in flight, system wide
# - the lock is an asyncio.Lock, so waiters are served in arrival order and
#   a holder cannot take it again (no re-entry)
# - no retries and no timeouts here; failures go straight back to the caller
#
import asyncio

from .constants import LEDGER_CLA, P2_START, P2_MORE, P2_LAST, MAX_CHUNK_LEN
from .utils import chunks


class DeviceSession:
    def __init__(self, transport):
        self.transport = transport
        self._lock = asyncio.Lock()

    async def exchange(self, ins, p1=0, p2=0, data=b'', cla=LEDGER_CLA):
        # status word is checked by the transport and removed here
        async with self._lock:
            resp = await self.transport.send(cla, ins, p1, p2, data)
        return resp[:-2]

    async def send_chunked(self, ins, path_data, payload, chunk_size=MAX_CHUNK_LEN):
        # Multi-step flow: path first, then the payload in pieces. Only the
        # reply to the last piece means anything.
        await self.exchange(ins, 0x00, P2_START, path_data)

        pieces = chunks(payload, chunk_size)
        for here in pieces[:-1]:
            await self.exchange(ins, 0x00, P2_MORE, here)

        return await self.exchange(ins, 0x00, P2_LAST, pieces[-1])

    async def close(self):
        await self.transport.close()

# EOF
