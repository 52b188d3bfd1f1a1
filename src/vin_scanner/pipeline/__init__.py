"""
VIN Scanner Pipeline - Main Pipeline Module
===========================================

Contains the scan orchestrator.
"""

from .vin_pipeline import (
    VINScanPipeline,
    ScanResult,
    ScanOutcome,
    ScanState,
    StageResult,
    StageFailure,
    NO_VIN_FOUND_MESSAGE,
    scan_vin,
)

__all__ = [
    "VINScanPipeline",
    "ScanResult",
    "ScanOutcome",
    "ScanState",
    "StageResult",
    "StageFailure",
    "NO_VIN_FOUND_MESSAGE",
    "scan_vin",
]
