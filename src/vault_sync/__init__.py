"""vault_sync: three-way synchronization of a local folder with a remote store."""

__version__ = "0.1.0"
