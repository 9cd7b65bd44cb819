from dataclasses import dataclass


@dataclass
class AdminContext:
    """Identity context for the operator managing webhook configs. Not tenant-scoped."""
    email: str
