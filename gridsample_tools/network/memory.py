"""In-memory network implementation.

A minimal, dictionary-backed implementation of the `Network` protocol. It
holds one value set per working state and keeps elements in insertion order,
which is the order the sampler enumerates them in.

Typical usage example:

    from gridsample_tools.network import MemoryNetwork

    network = MemoryNetwork("sim1")
    network.add_generator("G1", target_p=100.0, min_p=0.0, max_p=200.0)
    network.add_load("L1", p0=80.0, q0=10.0)
"""

from dataclasses import dataclass, field
import math


@dataclass
class MemoryTerminal:
    p: float = math.nan
    q: float = math.nan
    connected: bool = True


@dataclass
class MemoryGenerator:
    id: str
    target_p: float = 0.0
    min_p: float = -math.inf
    max_p: float = math.inf
    terminal: MemoryTerminal = field(default_factory=MemoryTerminal)


@dataclass
class MemoryLoad:
    id: str
    p0: float = 0.0
    q0: float = 0.0
    terminal: MemoryTerminal = field(default_factory=MemoryTerminal)


class MemoryNetwork:
    """Dictionary-backed network with named working states.

    Attributes:
        id (str): Network identifier.
        working_state_id (str): Identifier of the working state.
    """

    def __init__(self, network_id: str, working_state_id: str = "InitialState"):
        self.id = network_id
        self.working_state_id = working_state_id
        self._generators: dict[str, MemoryGenerator] = {}
        self._loads: dict[str, MemoryLoad] = {}

    def __repr__(self):
        return f"MemoryNetwork(id={self.id!r}, working_state_id={self.working_state_id!r})"

    @property
    def generators(self) -> list[MemoryGenerator]:
        return list(self._generators.values())

    @property
    def loads(self) -> list[MemoryLoad]:
        return list(self._loads.values())

    def get_generator(self, generator_id: str) -> MemoryGenerator | None:
        return self._generators.get(generator_id)

    def get_load(self, load_id: str) -> MemoryLoad | None:
        return self._loads.get(load_id)

    def add_generator(
        self,
        generator_id: str,
        target_p: float = 0.0,
        min_p: float = -math.inf,
        max_p: float = math.inf,
        connected: bool = True
    ) -> MemoryGenerator:
        """Add a generator; its terminal P starts at `-target_p` (load sign convention)."""
        if generator_id in self._generators:
            raise ValueError(f"Generator {generator_id} already exists in network {self.id}")
        generator = MemoryGenerator(
            id=generator_id,
            target_p=target_p,
            min_p=min_p,
            max_p=max_p,
            terminal=MemoryTerminal(p=-target_p, q=0.0, connected=connected)
        )
        self._generators[generator_id] = generator
        return generator

    def add_load(
        self,
        load_id: str,
        p0: float = 0.0,
        q0: float = 0.0,
        connected: bool = True
    ) -> MemoryLoad:
        if load_id in self._loads:
            raise ValueError(f"Load {load_id} already exists in network {self.id}")
        load = MemoryLoad(
            id=load_id,
            p0=p0,
            q0=q0,
            terminal=MemoryTerminal(p=p0, q=q0, connected=connected)
        )
        self._loads[load_id] = load
        return load
