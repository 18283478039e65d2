"""netwatchdog - connectivity watchdog that restarts networking or reboots when offline."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("netwatchdog")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from netwatchdog.app import main
from netwatchdog.watchdog import Watchdog

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "Watchdog",
    "main",
]
