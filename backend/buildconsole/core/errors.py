"""Exception types shared across the store, services and API layers."""


class ConsoleError(Exception):
    """Base class for errors raised by the console backend."""


class StoreError(ConsoleError):
    """The document store failed to read or write a path."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class NotFoundError(ConsoleError):
    """An entity id did not resolve in the local view state."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id
