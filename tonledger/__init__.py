#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
__version__ = '1.0.0'

__all__ = [ 'cell', 'cli', 'client', 'constants', 'errors', 'messages', 'parser', 'payload',
            'protocol', 'session', 'transport', 'utils' ]
