from warehouse_ops.routing.path_optimizer import (
    BatchPathResult,
    PathOptimizer,
    PathResult,
    RouteConstraints,
    RouteStrategy,
)

__all__ = ["BatchPathResult", "PathOptimizer", "PathResult", "RouteConstraints", "RouteStrategy"]
