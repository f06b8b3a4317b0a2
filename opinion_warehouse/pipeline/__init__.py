"""
Warehouse Load Pipeline
"""
from .orchestrator import (
    FactCounts,
    LoadStatus,
    WarehouseLoader,
    WarehouseLoadReport,
    run_warehouse_load,
)

__all__ = [
    "FactCounts",
    "LoadStatus",
    "WarehouseLoader",
    "WarehouseLoadReport",
    "run_warehouse_load",
]
