"""tender-digest: procurement tender polling, storage and e-mail digests."""

__version__ = "0.1.0"
