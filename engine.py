# engine.py

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from config import AllocationStrategy, SimulatorConfig
from exceptions import (
    BlockTableError,
    CapacityExceeded,
    DuplicateIdentifier,
    InvalidRequest,
    NoFitFound,
    ProcessNotFound,
)
from utils import generate_id

logger = logging.getLogger(__name__)


@dataclass
class Process:
    """
    A request for a contiguous region of simulated memory.

    Clock stamps stay None until the engine sets them: allocated_at on a
    successful allocation, deallocated_at when the block is freed.
    """
    id: str
    name: str
    size: int
    start_time: int = 0
    allocated_at: Optional[int] = None
    deallocated_at: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.allocated_at is not None and self.deallocated_at is None

    def duration(self, now: int) -> Optional[int]:
        if self.allocated_at is None:
            return None
        end = self.deallocated_at if self.deallocated_at is not None else now
        return end - self.allocated_at


class MemoryBlock:
    def __init__(self, block_id, start, end, is_free=True, process_id=None):
        self.id = block_id
        self.start = start
        self.end = end
        self.is_free = is_free
        self.process_id = process_id

    @property
    def size(self):
        return self.end - self.start

    def to_row(self, process=None):
        return {
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "size": self.size,
            "is_free": self.is_free,
            "process_id": self.process_id,
            "process_name": process.name if process is not None else None,
        }

    def __repr__(self):
        state = "F" if self.is_free else "A"
        return f"[{state}|{self.start}|{self.size}]"


# -----------------------------
# Process Registry
# -----------------------------
class ProcessRegistry:
    """
    Append-only ledger of every process that was ever allocated.

    Entries survive deallocation so the full allocation history stays
    available for reporting.
    """

    def __init__(self, max_processes: Optional[int] = None):
        self.max_processes = max_processes
        self._processes: Dict[str, Process] = {}

    def ensure_can_register(self, process: Process):
        if process.id in self._processes:
            raise DuplicateIdentifier(
                f"Process id {process.id!r} is already registered",
                {"process_id": process.id},
            )
        if self.max_processes is not None and len(self._processes) >= self.max_processes:
            raise CapacityExceeded(
                f"Process registry is full ({self.max_processes} entries)",
                {"max_processes": self.max_processes},
            )

    def register(self, process: Process) -> Process:
        """Store a copy of ``process`` so later edits by the caller do not leak in."""
        self.ensure_can_register(process)
        entry = replace(process)
        self._processes[process.id] = entry
        return entry

    def get(self, process_id: str) -> Optional[Process]:
        return self._processes.get(process_id)

    def active(self) -> List[Process]:
        return [p for p in self._processes.values() if p.active]

    def __contains__(self, process_id):
        return process_id in self._processes

    def __len__(self):
        return len(self._processes)

    def __iter__(self) -> Iterator[Process]:
        return iter(self._processes.values())


# -----------------------------
# Block Table
# -----------------------------
class BlockTable:
    """
    Ordered blocks partitioning ``[0, total_memory)``.

    Only split() and remove() change the number of blocks. Every mutator
    keeps the table sorted, gapless and summing to total_memory; misuse
    raises BlockTableError, which signals a bug in the caller rather than a
    rejected request.
    """

    def __init__(self, total_memory: int, max_blocks: Optional[int] = None,
                 id_factory: Optional[Callable[[], str]] = None):
        self.total_memory = total_memory
        self.max_blocks = max_blocks
        self._id_factory = id_factory or (lambda: generate_id("block"))
        self._blocks: List[MemoryBlock] = []
        self._blocks.append(MemoryBlock(self._new_block_id(), 0, total_memory))

    def __len__(self):
        return len(self._blocks)

    def __getitem__(self, index) -> MemoryBlock:
        return self._blocks[index]

    def __iter__(self) -> Iterator[MemoryBlock]:
        return iter(self._blocks)

    def find_owner_index(self, process_id: str) -> Optional[int]:
        for i, block in enumerate(self._blocks):
            if not block.is_free and block.process_id == process_id:
                return i
        return None

    def index_at(self, address: int) -> int:
        """Index of the block containing ``address``; wraps to 0 past the end."""
        if address <= 0 or address >= self.total_memory:
            return 0
        for i, block in enumerate(self._blocks):
            if block.start <= address < block.end:
                return i
        return 0

    def can_split(self) -> bool:
        return self.max_blocks is None or len(self._blocks) < self.max_blocks

    # -----------------------------
    # Mutators
    # -----------------------------
    def split(self, index: int, at_size: int) -> MemoryBlock:
        """
        Cut a free block into ``[start, start + at_size)`` and a new free
        remainder inserted right after it.

        Returns:
            MemoryBlock: The newly created remainder block
        """
        block = self._blocks[self._check_index(index)]
        if not block.is_free:
            raise BlockTableError(f"Cannot split occupied block {block.id}", {"index": index})
        if at_size <= 0 or at_size >= block.size:
            raise BlockTableError(
                f"Split size {at_size} out of range for block of size {block.size}",
                {"index": index, "at_size": at_size},
            )
        if not self.can_split():
            raise CapacityExceeded(
                f"Block table is full ({self.max_blocks} blocks)",
                {"max_blocks": self.max_blocks},
            )

        remainder = MemoryBlock(self._new_block_id(), block.start + at_size, block.end)
        block.end = block.start + at_size
        self._blocks.insert(index + 1, remainder)
        return remainder

    def remove(self, index: int) -> MemoryBlock:
        """Fold the free block at ``index`` into its free left neighbour."""
        self._check_index(index)
        if index == 0:
            raise BlockTableError("The first block has no left neighbour to merge into")
        left, right = self._blocks[index - 1], self._blocks[index]
        if not (left.is_free and right.is_free):
            raise BlockTableError(
                f"Only adjacent free blocks can be merged ({left!r}, {right!r})",
                {"index": index},
            )
        left.end = right.end
        del self._blocks[index]
        return right

    def mark(self, index: int, free: bool, process_id: Optional[str] = None):
        block = self._blocks[self._check_index(index)]
        if free and process_id is not None:
            raise BlockTableError("A free block cannot reference a process", {"index": index})
        if not free:
            if process_id is None:
                raise BlockTableError("An occupied block needs an owning process", {"index": index})
            if not block.is_free:
                raise BlockTableError(f"Block {block.id} is already occupied", {"index": index})
        block.is_free = free
        block.process_id = process_id

    # -----------------------------
    # Validation
    # -----------------------------
    def check_invariants(self):
        if not self._blocks or self._blocks[0].start != 0:
            raise BlockTableError("Block table must start at address 0")
        if self._blocks[-1].end != self.total_memory:
            raise BlockTableError(
                f"Block table ends at {self._blocks[-1].end}, expected {self.total_memory}"
            )
        for left, right in zip(self._blocks, self._blocks[1:]):
            if left.end != right.start:
                raise BlockTableError(f"Gap or overlap between {left!r} and {right!r}")
        for block in self._blocks:
            if block.size <= 0:
                raise BlockTableError(f"Empty block {block.id}")
            if block.is_free != (block.process_id is None):
                raise BlockTableError(f"Block {block.id} has an inconsistent owner")

    def _check_index(self, index: int) -> int:
        if not 0 <= index < len(self._blocks):
            raise BlockTableError(
                f"Block index {index} out of range (0..{len(self._blocks) - 1})",
                {"index": index},
            )
        return index

    def _new_block_id(self) -> str:
        block_id = self._id_factory()
        if any(b.id == block_id for b in self._blocks):
            raise DuplicateIdentifier(f"Block id {block_id!r} already in use", {"block_id": block_id})
        return block_id


# -----------------------------
# Strategy Selection
# -----------------------------
def select_block(blocks: Sequence[MemoryBlock], size: int, strategy: str,
                 cursor: int = 0) -> Optional[int]:
    """
    Pick the index of a free block able to hold ``size`` units.

    Scans in address order and never mutates ``blocks``. Ties under
    Best-Fit and Worst-Fit go to the lowest address.

    Args:
        blocks: Blocks in ascending start order
        size (int): Requested size
        strategy (str): One of AllocationStrategy.ALL
        cursor (int): Starting index for Next-Fit

    Returns:
        Optional[int]: Block index, or None when nothing fits
    """
    if strategy == AllocationStrategy.FIRST_FIT:
        return _first_fit(blocks, size)
    elif strategy == AllocationStrategy.BEST_FIT:
        return _best_fit(blocks, size)
    elif strategy == AllocationStrategy.WORST_FIT:
        return _worst_fit(blocks, size)
    elif strategy == AllocationStrategy.NEXT_FIT:
        return _next_fit(blocks, size, cursor)
    raise InvalidRequest(f"Unknown allocation strategy: {strategy!r}")


def _first_fit(blocks, req):
    for i, block in enumerate(blocks):
        if block.is_free and block.size >= req:
            return i
    return None


def _best_fit(blocks, req):
    best_index = None
    best_size = float('inf')

    for i, block in enumerate(blocks):
        if block.is_free and block.size >= req and block.size < best_size:
            best_size = block.size
            best_index = i

    return best_index


def _worst_fit(blocks, req):
    worst_index = None
    worst_size = -1

    for i, block in enumerate(blocks):
        if block.is_free and block.size >= req and block.size > worst_size:
            worst_size = block.size
            worst_index = i

    return worst_index


def _next_fit(blocks, req, cursor):
    count = len(blocks)
    if count == 0:
        return None
    for offset in range(count):
        i = (cursor + offset) % count
        if blocks[i].is_free and blocks[i].size >= req:
            return i
    return None


# -----------------------------
# Fragmentation
# -----------------------------
def compute_fragmentation(blocks: Sequence[MemoryBlock], total_memory: int) -> float:
    """
    External fragmentation as a percentage of total memory.

    Free space outside the largest free block counts as fragmented, so a
    single free hole always reports 0.0.
    """
    free_sizes = [b.size for b in blocks if b.is_free]
    largest = max(free_sizes, default=0)
    if largest == 0:
        return 0.0
    return (sum(free_sizes) - largest) / total_memory * 100.0


# -----------------------------
# Engine
# -----------------------------
class MemoryEngine:
    """
    Contiguous-allocation simulator over a fixed address space.

    The engine owns the block table, the process registry and the logical
    clock. It never advances the clock on its own; callers move it with
    advance_clock() or tick() between operations. Public methods run under
    a single lock so one engine can be shared by a threaded host.

    Attributes:
        total_memory (int): Size of the managed address space
        strategy (str): Active placement policy
        table (BlockTable): Current partition of memory
        registry (ProcessRegistry): Every process ever allocated
        current_time (int): Logical clock used for stamping
        fragmentation (float): External fragmentation percentage
        last_selected (Optional[int]): Index of the most recent allocation
        event_log (List[str]): Human-readable history of operations
    """

    def __init__(self, total_memory: int = 2048, strategy: str = AllocationStrategy.BEST_FIT,
                 max_blocks: Optional[int] = None, max_processes: Optional[int] = None):
        if total_memory <= 0:
            raise InvalidRequest(f"Total memory must be positive, got {total_memory}")
        self._check_strategy(strategy)
        self.total_memory = total_memory
        self.strategy = strategy
        self.max_blocks = max_blocks
        self.max_processes = max_processes
        self._lock = threading.RLock()
        self.reset()

    @classmethod
    def from_config(cls, config: SimulatorConfig) -> "MemoryEngine":
        config.validate()
        return cls(
            total_memory=config.total_memory,
            strategy=config.strategy,
            max_blocks=config.max_blocks,
            max_processes=config.max_processes,
        )

    def reset(self):
        """Drop all allocations and history, keeping size and strategy."""
        with self._lock:
            self.table = BlockTable(self.total_memory, max_blocks=self.max_blocks)
            self.registry = ProcessRegistry(max_processes=self.max_processes)
            self.current_time = 0
            self.fragmentation = 0.0
            self.last_selected: Optional[int] = None
            self.event_log: List[str] = []
            self._next_fit_address = 0
            logger.debug("Engine reset: %d units, %s", self.total_memory, self.strategy)

    # -----------------------------
    # Configuration
    # -----------------------------
    def set_strategy(self, strategy: str):
        self._check_strategy(strategy)
        with self._lock:
            if strategy != self.strategy:
                logger.debug("Strategy changed: %s -> %s", self.strategy, strategy)
                self.event_log.append(f"Strategy set to {strategy}")
            self.strategy = strategy

    def advance_clock(self, to: int):
        with self._lock:
            if to < self.current_time:
                raise InvalidRequest(
                    f"Clock cannot move backwards ({self.current_time} -> {to})",
                    {"current_time": self.current_time, "requested": to},
                )
            logger.debug("Clock advanced: %d -> %d", self.current_time, to)
            self.current_time = to

    def tick(self, step: int = 1):
        if step < 0:
            raise InvalidRequest(f"Clock step must be non-negative, got {step}")
        with self._lock:
            self.advance_clock(self.current_time + step)

    def create_process(self, name: str, size: int) -> Process:
        """
        Build a process stamped with the current time.

        Raises:
            InvalidRequest: If the name is empty or size is outside
                [1, total_memory]
        """
        if not name or not name.strip():
            raise InvalidRequest("Please enter a process name")
        if size <= 0 or size > self.total_memory:
            raise InvalidRequest(
                f"Process size must be between 1 and {self.total_memory}",
                {"size": size},
            )
        return Process(
            id=generate_id("process"),
            name=name.strip(),
            size=size,
            start_time=self.current_time,
        )

    # -----------------------------
    # Allocation
    # -----------------------------
    def allocate(self, process: Process) -> MemoryBlock:
        """
        Place ``process`` in memory under the active strategy.

        Nothing is modified unless the allocation succeeds.

        Args:
            process (Process): Process to place; its allocated_at is stamped

        Returns:
            MemoryBlock: The block now owned by the process

        Raises:
            InvalidRequest: If the size is not positive or the process is
                already resident
            NoFitFound: If no free block is large enough
            CapacityExceeded: If a configured block or process bound is hit
        """
        with self._lock:
            if process.size <= 0:
                raise InvalidRequest(
                    f"Requested size must be positive, got {process.size}",
                    {"process_id": process.id, "size": process.size},
                )
            if self.table.find_owner_index(process.id) is not None:
                raise InvalidRequest(
                    f"Process {process.id!r} already occupies a block",
                    {"process_id": process.id},
                )
            self.registry.ensure_can_register(process)

            cursor = self.table.index_at(self._next_fit_address)
            index = select_block(self.table, process.size, self.strategy, cursor)
            if index is None:
                logger.warning("No fit for %s (%d units) under %s",
                               process.name, process.size, self.strategy)
                self.event_log.append(f"No fit: {process.name} needs {process.size}")
                raise NoFitFound(process.size, self.strategy)

            block = self.table[index]
            if block.size > process.size:
                self.table.split(index, process.size)
            self.table.mark(index, free=False, process_id=process.id)

            process.allocated_at = self.current_time
            self.registry.register(process)
            if self.strategy == AllocationStrategy.NEXT_FIT:
                self._next_fit_address = block.end
            self.last_selected = index
            self._recompute_fragmentation()

            logger.info("Allocated %s (%d units) at [%d, %d) using %s",
                        process.name, process.size, block.start, block.end, self.strategy)
            self.event_log.append(
                f"Allocated: {process.name} -> [{block.start}-{block.end}] ({self.strategy})"
            )
            return block

    def deallocate(self, process_id: str) -> Process:
        """
        Free the block owned by ``process_id`` and coalesce free neighbours.

        Returns:
            Process: The registry entry, now stamped with deallocated_at

        Raises:
            ProcessNotFound: If no occupied block belongs to the id
        """
        with self._lock:
            index = self.table.find_owner_index(process_id)
            if index is None:
                logger.warning("Deallocate: no block owned by %s", process_id)
                raise ProcessNotFound(
                    f"No occupied block belongs to process {process_id!r}",
                    {"process_id": process_id},
                )

            block = self.table[index]
            start, end = block.start, block.end
            process = self.registry.get(process_id)
            self.table.mark(index, free=True)
            if process is not None:
                process.deallocated_at = self.current_time

            merged = self._coalesce()
            self.last_selected = None
            self._recompute_fragmentation()

            name = process.name if process is not None else process_id
            logger.info("Freed %s at [%d, %d), %d merge(s)", name, start, end, merged)
            self.event_log.append(f"Freed: {name} from [{start}-{end}]")
            return process

    def _coalesce(self) -> int:
        merges = 0
        i = 0
        while i < len(self.table) - 1:
            if self.table[i].is_free and self.table[i + 1].is_free:
                # stay on i: the grown block may touch another free one
                self.table.remove(i + 1)
                merges += 1
            else:
                i += 1
        return merges

    def _recompute_fragmentation(self):
        self.fragmentation = compute_fragmentation(self.table, self.total_memory)

    # -----------------------------
    # Reporting
    # -----------------------------
    def get_state(self) -> List[MemoryBlock]:
        return list(self.table)

    def owner_of(self, block: MemoryBlock) -> Optional[Process]:
        if block.process_id is None:
            return None
        return self.registry.get(block.process_id)

    def snapshot(self) -> Dict:
        """Read-only view of the engine for reporting and comparison."""
        with self._lock:
            return {
                "total_memory": self.total_memory,
                "strategy": self.strategy,
                "current_time": self.current_time,
                "blocks": [block.to_row(self.owner_of(block)) for block in self.table],
                "fragmentation": self.fragmentation,
                "active_process_count": len(self.registry.active()),
            }

    def get_memory_stats(self) -> Dict[str, float]:
        """
        Usage percentages for the statistics panel.

        Returns:
            Dict[str, float]: used, free and fragmented percentages of total
                memory, plus the number of active processes
        """
        with self._lock:
            used = sum(b.size for b in self.table if not b.is_free)
            free = self.total_memory - used
            return {
                "used": round(used / self.total_memory * 100.0, 4),
                "free": round(free / self.total_memory * 100.0, 4),
                "fragmented": round(self.fragmentation, 4),
                "active_processes": len(self.registry.active()),
            }

    def process_history(self) -> List[Dict]:
        with self._lock:
            return [
                {
                    "id": p.id,
                    "name": p.name,
                    "size": p.size,
                    "start_time": p.start_time,
                    "allocated_at": p.allocated_at,
                    "deallocated_at": p.deallocated_at,
                    "duration": p.duration(self.current_time),
                    "active": p.active,
                }
                for p in self.registry
            ]

    @staticmethod
    def _check_strategy(strategy: str):
        if strategy not in AllocationStrategy.ALL:
            raise InvalidRequest(
                f"Unknown allocation strategy: {strategy!r}",
                {"strategy": strategy},
            )
