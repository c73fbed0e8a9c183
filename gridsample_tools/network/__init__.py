"""
# Network Access

This module describes the network surface the sampler reads and mutates, and
provides a minimal in-memory implementation of it.

## Components

- `Network`, `Generator`, `Load`, `Terminal`: Protocols of the accessed network
- `get_generators_ids`, `get_connected_generators_ids`, `get_loads_ids`,
  `get_connected_loads_ids`: Element ids in network iteration order
- `MemoryNetwork`: Dictionary-backed network implementation
"""

from .base import *
from .memory import *
