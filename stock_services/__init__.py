"""
Application services: the composition root and the dispatch guide boundary.
"""

from stock_services.application import InventoryApplication
from stock_services.dispatch_guide import (
    DispatchGuideGateway,
    DispatchGuideResult,
    DispatchGuideService,
    ShipmentDetails,
    SimulatedDispatchGuideGateway,
)

__all__ = [
    "InventoryApplication",
    "DispatchGuideGateway",
    "DispatchGuideResult",
    "DispatchGuideService",
    "ShipmentDetails",
    "SimulatedDispatchGuideGateway",
]
