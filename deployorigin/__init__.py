"""deployorigin — deployment origin descriptors kept in sync with their origin file."""

__version__ = "0.1.0"
