"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import server  # noqa: F401
from . import user  # noqa: F401
