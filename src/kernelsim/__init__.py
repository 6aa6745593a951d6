"""kernelsim — a round-robin scheduler and I/O-blocking kernel, simulated.

Boot a system and run it::

    from kernelsim.bootloader import Bootloader
    from kernelsim.config import KernelConfig

    simulation = Bootloader(config=KernelConfig(num_apps=4)).boot()
    simulation.run_until_finished()
"""

__version__ = "0.1.0"
