#
# TON app (Ledger) USB protocol and python support library
#

# To use this command, during dev, install and yet be able to edit the code:
#
#   pip install --editable .
#

from setuptools import setup

requirements = [
    'hidapi>=0.7.99.post21',
    'ecdsa>=0.18',
]

cli_requirements = [
    'click>=6.7',
]

test_requirements = [
    'pytest',
    'click>=6.7',
]

with open("README.md", "r") as fh:
    long_description = fh.read()

from tonledger import __version__

setup(
    name='tonledger-protocol',
    version=__version__,
    packages=[ 'tonledger' ],
    python_requires='>=3.10',
    install_requires=requirements,
    extras_require={
        'cli': cli_requirements,
        'test': test_requirements,
    },
    description="Sign TON messages and transactions with a Ledger, using Python",
    long_description=long_description,
    long_description_content_type="text/markdown",
    entry_points='''
        [console_scripts]
        tonledger=tonledger.cli:main
    ''',
    classifiers=[
        'Operating System :: POSIX :: Linux',
        'Operating System :: Microsoft :: Windows',
        'Operating System :: MacOS :: MacOS X',
    ],
)
