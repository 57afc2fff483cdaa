"""Allow ``python -m newt_healthd``."""

from newt_healthd.server import run

run()
