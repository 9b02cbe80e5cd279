"""Allow `python -m faucet`."""

from faucet.main import main

main()
