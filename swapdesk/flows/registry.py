# swapdesk/flows/registry.py

_registry: dict[str, "FlowHandler"] = {}

def register(handler_cls):
    """Decorator to register a flow handler class by its kind."""
    instance = handler_cls()
    _registry[instance.kind] = instance
    return handler_cls

def get(kind: str):
    return _registry.get(kind)

def all_flows():
    return _registry
