"""Allow ``python -m kernelsim``."""

from kernelsim.cli import entrypoint

entrypoint()
