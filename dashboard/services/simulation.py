from typing import Literal

from dashboard.schemas.health import SimulationStatus


SimulationMode = Literal["normal", "ready", "simulating"]


def derive_simulation_mode(status: SimulationStatus | None) -> SimulationMode:
    """
    normal     - режим симуляции выключен или статус еще не загружен;
    simulating - включен хотя бы один из флагов симуляции;
    ready      - режим включен, но ни один флаг не активен.
    """
    if status is None or not status.simulation_mode_enabled:
        return "normal"
    return "simulating" if status.active_sub_flags() else "ready"
