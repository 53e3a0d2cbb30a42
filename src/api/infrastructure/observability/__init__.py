"""Infrastructure probes for the database engine and application startup.

Business code reports to probes instead of calling a logger, following
Domain-Oriented Observability:
https://martinfowler.com/articles/domain-oriented-observability.html
"""

from infrastructure.observability.probes import (
    DatabaseEngineProbe,
    DefaultDatabaseEngineProbe,
)
from infrastructure.observability.startup_probe import (
    DefaultStartupProbe,
    StartupProbe,
)
from shared_kernel.observability_context import ObservationContext

__all__ = [
    "DatabaseEngineProbe",
    "DefaultDatabaseEngineProbe",
    "DefaultStartupProbe",
    "ObservationContext",
    "StartupProbe",
]
