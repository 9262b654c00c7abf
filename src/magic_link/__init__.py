"""py-magiclink — single-use magic-link fund claims."""

__version__ = "0.1.0"
