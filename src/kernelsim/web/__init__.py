"""Browser dashboard for the simulator.

This package provides a Flask application that shows a running
simulation in a browser.  It is an **optional** extra — install with::

    pip install kernelsim[web]

The ``create_app`` factory in ``app.py`` boots a simulation and serves
three endpoints:

- ``GET /`` — HTML page with the boot log and live process table.
- ``GET /api/status`` — JSON snapshot of the kernel state.
- ``POST /api/step`` — advance the simulation and return the snapshot.
"""
