"""Network access protocol and element ordering helpers.

The sampler never owns the grid model: it reads identifiers, connection
status and active power bounds, and writes a handful of numeric fields. This
module describes that surface as typing protocols, so any network
implementation exposing these attributes can be sampled.

The id helpers return elements in network iteration order. That order is the
one used when the historical forecast errors matrices were built, and the
sampled columns are matched to elements by position only: a network that
iterates its elements in a different order silently mismatches samples and
elements. No check is possible from this side.
"""

from typing import Iterable, Optional, Protocol


class Terminal(Protocol):
    p: float
    q: float
    connected: bool


class Generator(Protocol):
    id: str
    target_p: float
    min_p: float
    max_p: float
    terminal: Terminal


class Load(Protocol):
    id: str
    p0: float
    q0: float
    terminal: Terminal


class Network(Protocol):
    id: str

    @property
    def working_state_id(self) -> str: ...

    @property
    def generators(self) -> Iterable[Generator]: ...

    @property
    def loads(self) -> Iterable[Load]: ...

    def get_generator(self, generator_id: str) -> Optional[Generator]: ...

    def get_load(self, load_id: str) -> Optional[Load]: ...


def get_generators_ids(network: Network) -> list[str]:
    return [generator.id for generator in network.generators]


def get_connected_generators_ids(network: Network) -> list[str]:
    return [
        generator.id for generator in network.generators
        if generator.terminal.connected
    ]


def get_loads_ids(network: Network) -> list[str]:
    return [load.id for load in network.loads]


def get_connected_loads_ids(network: Network) -> list[str]:
    return [load.id for load in network.loads if load.terminal.connected]
