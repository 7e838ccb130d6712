from warehouse_ops.simulator.generator import Scenario, ScenarioGenerator

__all__ = ["Scenario", "ScenarioGenerator"]
