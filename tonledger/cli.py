#!/usr/bin/env python
#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# To use this, install with:
#
#   pip install --editable .
#
# That will create the command "tonledger" in your path.
#
# Background:
# - see <https://github.com/trezor/cython-hidapi/blob/master/hid.pyx> for HID api
# - the --simulator option talks to Speculos on its APDU port (9999 by default)
#
import hid, click, sys, asyncio, time
from pprint import pformat
from binascii import a2b_hex
from functools import wraps

from tonledger.client import TonLedgerClient, PlaintextRequest
from tonledger.errors import TonLedgerError, IntegrityError
from tonledger.transport import HIDTransport, SpeculosTransport, LEDGER_VID
from tonledger.utils import parse_path, B2A

global force_device, force_simulator, force_host, force_port, force_verbose
force_device = None
force_simulator = False
force_host = '127.0.0.1'
force_port = 9999
force_verbose = False

# first account, first wallet
DEFAULT_PATH = "m/44'/607'/0'/0'/0'/0'"

# Cleanup display (supress traceback) for user-feedback exceptions
_sys_excepthook = sys.excepthook
def my_hook(ty, val, tb):
    if issubclass(ty, TonLedgerError):
        print("\n\n%s" % val, file=sys.stderr)
    else:
        return _sys_excepthook(ty, val, tb)
sys.excepthook=my_hook

def get_transport():
    if force_simulator:
        return SpeculosTransport(force_host, force_port, verbose=force_verbose)
    return HIDTransport(path=force_device, verbose=force_verbose)

def run_with_client(fn):
    # one event loop per command; the link is always closed afterwards
    async def doit():
        client = TonLedgerClient(get_transport())
        try:
            return await fn(client)
        finally:
            await client.close()

    return asyncio.run(doit())

# Options we want for all commands
@click.group()
@click.option('--device', '-d', default=None, metavar="PATH",
                    help="Operate on specific HID device path (default: first found)")
@click.option('--simulator', '-x', default=False, is_flag=True,
                    help="Connect to the Speculos emulator via TCP")
@click.option('--host', default='127.0.0.1', help="Emulator host")
@click.option('--port', default=9999, type=int, help="Emulator APDU port")
@click.option('--verbose', '-v', default=False, is_flag=True,
                    help="Show every APDU sent and received")
def main(device, simulator, host, port, verbose):
    global force_device, force_simulator, force_host, force_port, force_verbose
    force_device = device.encode('ascii') if device else None
    force_simulator = simulator
    force_host = host
    force_port = port
    force_verbose = verbose

def display_errors(f):
    # clean-up display of errors from the device and our own checks
    @wraps(f)
    def wrapper(*args, **kws):
        try:
            return f(*args, **kws)
        except IntegrityError as exc:
            click.echo("\nSECURITY CHECK FAILED: %s\n" % exc)
            sys.exit(1)
        except TonLedgerError as exc:
            click.echo("\n%s\n" % exc)
            sys.exit(1)
    return wrapper

@main.command('list')
def _list():
    "List all attached Ledger devices"

    count = 0
    for info in hid.enumerate(LEDGER_VID, 0):
        click.echo("\nLedger {product_string}:\n{nice}".format(
                            nice=pformat(info, indent=4)[1:-1], **info))
        count += 1

    if not count:
        click.echo("(none found)")

@main.command('app')
@display_errors
def current_app():
    "Show which app is open on the device"
    app = run_with_client(lambda c: c.get_current_app())

    click.echo("%s %s" % (app.name, app.version))

@main.command('version')
@display_errors
def get_version():
    "Get the version of the TON app"
    click.echo(run_with_client(lambda c: c.get_version()))

@main.command('settings')
@display_errors
def get_settings():
    "Show the TON app settings"
    s = run_with_client(lambda c: c.get_settings())

    click.echo("Blind signing: %s" % ('enabled' if s.blind_signing_enabled else 'disabled'))
    click.echo("Expert mode: %s" % ('on' if s.expert_mode else 'off'))

@main.command('pubkey')
@click.argument('path', default=DEFAULT_PATH, metavar="[m/44'/607'/...]", required=False)
@click.option('--show', '-s', is_flag=True, help='Show the address on the device and wait for approval')
@click.option('--testnet', '-t', is_flag=True, help='Display as a test-only address')
@click.option('--chain', '-c', default=0, type=click.IntRange(-1, 0), help='Workchain (0 or -1)')
@display_errors
def get_pubkey(path, show=False, testnet=False, chain=0):
    "Get the ed25519 public key for a derivation path"
    path = parse_path(path)

    pk = run_with_client(lambda c: c.get_public_key(path, display=show, test_only=testnet, chain=chain))
    click.echo(B2A(pk))

@main.command('proof')
@click.argument('domain')
@click.argument('payload', metavar='HEX')
@click.option('--path', '-p', default=DEFAULT_PATH, help='Derivation for key to use')
@click.option('--timestamp', type=int, default=None, help='Unix time to sign (default: now)')
@display_errors
def address_proof(domain, payload, path, timestamp=None):
    "Prove ownership of an address to a website (ton_proof)"
    path = parse_path(path)
    if timestamp is None:
        timestamp = int(time.time())

    rv = run_with_client(lambda c: c.get_address_proof(path, domain, timestamp, a2b_hex(payload)))

    click.echo("signature: %s" % B2A(rv.signature))
    click.echo("hash: %s" % B2A(rv.hash))

@main.command('msg')
@click.argument('message')
@click.option('--path', '-p', default=DEFAULT_PATH, help='Derivation for key to use')
@click.option('--timestamp', type=int, default=None, help='Unix time to sign (default: now)')
@click.option('--just-sig', '-j', is_flag=True, help='Just the signature itself, nothing more')
@display_errors
def sign_message(message, path, timestamp=None, just_sig=False):
    "Sign a short plain-text message"
    path = parse_path(path)

    rv = run_with_client(lambda c: c.sign_data(path, PlaintextRequest(message), timestamp=timestamp))

    if just_sig:
        click.echo(B2A(rv.signature))
        return

    click.echo("signature: %s" % B2A(rv.signature))
    click.echo("cell hash: %s" % B2A(rv.cell.hash))
    click.echo("timestamp: %d" % rv.timestamp)

# EOF
