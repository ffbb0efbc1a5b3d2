# config.py

from dataclasses import dataclass
from typing import Optional

from exceptions import InvalidRequest


class AllocationStrategy:
    """
    Placement policies understood by the engine.

    FIRST_FIT: first free block large enough
    BEST_FIT:  smallest free block large enough
    WORST_FIT: largest free block large enough
    NEXT_FIT:  first fit, resuming after the last allocation
    """
    FIRST_FIT = "First-Fit"
    BEST_FIT = "Best-Fit"
    WORST_FIT = "Worst-Fit"
    NEXT_FIT = "Next-Fit"

    ALL = (FIRST_FIT, BEST_FIT, WORST_FIT, NEXT_FIT)


@dataclass
class SimulatorConfig:
    """
    Settings for one simulation run.

    Attributes:
        total_memory (int): Size of the managed address space (MB)
        strategy (str): Initial placement policy
        max_blocks (Optional[int]): Upper bound on block count, None for unbounded
        max_processes (Optional[int]): Upper bound on registered processes
        max_memory (int): Largest total memory the visualizer offers
        event_log_limit (int): Number of log lines the visualizer shows
    """
    total_memory: int = 2048
    strategy: str = AllocationStrategy.BEST_FIT
    max_blocks: Optional[int] = None
    max_processes: Optional[int] = None
    max_memory: int = 65536
    event_log_limit: int = 20

    def validate(self) -> "SimulatorConfig":
        if self.total_memory <= 0:
            raise InvalidRequest(f"Total memory must be positive, got {self.total_memory}")
        if self.strategy not in AllocationStrategy.ALL:
            raise InvalidRequest(f"Unknown allocation strategy: {self.strategy!r}")
        for name in ("max_blocks", "max_processes"):
            bound = getattr(self, name)
            if bound is not None and bound < 1:
                raise InvalidRequest(f"{name} must be at least 1, got {bound}")
        return self
