from agent.core.load_generator import (
    DataConnection,
    DataConnector,
    LoadGenerator,
    LoadPhase,
    PhaseResult,
    compute_rate,
)

__all__ = [
    "DataConnection",
    "DataConnector",
    "LoadGenerator",
    "LoadPhase",
    "PhaseResult",
    "compute_rate",
]
