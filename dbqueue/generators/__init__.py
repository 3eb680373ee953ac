from .migration import MigrationGenerator

__all__ = ["MigrationGenerator"]
