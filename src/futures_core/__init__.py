"""Decision core for a leveraged-futures trading bot."""

__version__ = "1.0.0"
