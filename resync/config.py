"""
resync Configuration
====================

Options for a root model. Everything has a sensible default, so most
applications only pass a connection:

```python
from resync import create_model

model = create_model(connection=conn)                  # browser-like client
server_model = create_model(connection=conn, is_server=True)
```

Bulk requests and unload delays are scheduled on the running asyncio event
loop by default. Code that runs without a loop passes its own scheduler:

```python
from resync import ManualScheduler

scheduler = ManualScheduler()
model = create_model(connection=conn, scheduler=scheduler)
model.fetch("posts.1")
scheduler.run_pending()
```
"""

from dataclasses import dataclass, field
from typing import Optional

from .emitter import DEFAULT_MAX_CYCLES
from .protocols import Connection
from .util.scheduler import AsyncioScheduler, Scheduler

CLIENT_UNLOAD_DELAY = 1.0


@dataclass
class ModelOptions:
    """
    Root model configuration.

    Attributes:
        connection: Source of share docs; None for purely local models
        fetch_only: Make subscribe behave as fetch (no live updates)
        is_server: Running in a server-side request context
        unload_delay: Seconds to wait before dropping a released document;
            None means 0 on the server and CLIENT_UNLOAD_DELAY otherwise
        max_mutation_cycles: Cap on queued event drain passes per emission
        pattern_cache_size: Minimum size of the process-wide parsed pattern
            LRU cache
        scheduler: Source of next-tick and delayed callbacks. The default
            AsyncioScheduler needs a running event loop for bulk and delayed
            operations; synchronous programs pass a ManualScheduler and drive
            it with ``advance()``
    """

    connection: Optional[Connection] = None
    fetch_only: bool = False
    is_server: bool = False
    unload_delay: Optional[float] = None
    max_mutation_cycles: int = DEFAULT_MAX_CYCLES
    pattern_cache_size: int = 1024
    scheduler: Scheduler = field(default_factory=AsyncioScheduler)

    def __post_init__(self):
        if self.unload_delay is None:
            self.unload_delay = 0 if self.is_server else CLIENT_UNLOAD_DELAY
        if self.unload_delay < 0:
            raise ValueError(f"unload_delay must be >= 0, got {self.unload_delay}")
        if self.max_mutation_cycles < 1:
            raise ValueError(
                f"max_mutation_cycles must be >= 1, got {self.max_mutation_cycles}"
            )
