from .rig import (
    CONTROLLER_NODES,
    UPPER_ARM_NODES,
    Chirality,
    ControllerInput,
    ControllerType,
    NodeRoleControl,
    NodeSample,
    NodeSetRegistry,
    NodeType,
    Rig,
    SensorSource,
)

# The simulated rig pulls in src.simulation; import it directly:
# from src.interface.simulated_rig import SimulatedRig

__all__ = [
    "CONTROLLER_NODES",
    "UPPER_ARM_NODES",
    "Chirality",
    "ControllerInput",
    "ControllerType",
    "NodeRoleControl",
    "NodeSample",
    "NodeSetRegistry",
    "NodeType",
    "Rig",
    "SensorSource",
]
