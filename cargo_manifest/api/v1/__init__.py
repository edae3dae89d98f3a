"""API v1 router."""
from fastapi import APIRouter

from cargo_manifest.api.v1.manifests import router as manifests_router
from cargo_manifest.api.v1.shipments import router as shipments_router
from cargo_manifest.api.v1.scans import router as scans_router


router = APIRouter(prefix="/v1")

router.include_router(manifests_router, prefix="/manifests", tags=["Manifests"])
router.include_router(shipments_router, prefix="/shipments", tags=["Shipments"])
router.include_router(scans_router, prefix="/scans", tags=["Scanning"])
