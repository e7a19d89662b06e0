"""Notice watcher: poll university notice pages and notify Telegram subscribers."""

__version__ = "1.0.0"

__all__ = ["__version__"]
