# feerecon/routers/__init__.py

from feerecon.routers import health
from feerecon.routers import imports
from feerecon.routers import warnings
from feerecon.routers import ibans

__all__ = ["health", "imports", "warnings", "ibans"]
