from journal_digest.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
