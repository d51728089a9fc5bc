from .db import VersusDb
from .helpers import VersusHelpers

__version__ = "0.3.0"

__all__ = ['VersusDb', 'VersusHelpers', '__version__']
