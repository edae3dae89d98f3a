"""Repository collaborators used by the manifest core."""
from cargo_manifest.repositories.base import ShipmentRepository, ManifestRepository, UnitOfWork
from cargo_manifest.repositories.sql import (
    SqlShipmentRepository, SqlManifestRepository, SqlUnitOfWork,
)

__all__ = [
    "ShipmentRepository", "ManifestRepository", "UnitOfWork",
    "SqlShipmentRepository", "SqlManifestRepository", "SqlUnitOfWork",
]
