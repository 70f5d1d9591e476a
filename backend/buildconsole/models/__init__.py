from buildconsole.models.audit import ImportLog
from buildconsole.models.document import StoreNode

__all__ = [
    "ImportLog",
    "StoreNode",
]
