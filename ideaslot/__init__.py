"""ideaslot: rate-limited social research and idea deduplication backend."""

__version__ = "0.1.0"
