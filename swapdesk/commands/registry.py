# swapdesk/commands/registry.py

from typing import Dict, List, Optional, Tuple, Type
from swapdesk.commands.base import BaseAction

class ActionRegistry:
    def __init__(self):
        self._actions: Dict[str, BaseAction] = {}

    def register(self, action_cls: Type[BaseAction]) -> None:
        if not issubclass(action_cls, BaseAction):
            raise TypeError("Only subclasses of BaseAction can be registered")
        if not getattr(action_cls, "trigger", None):
            raise ValueError("BaseAction class must define a trigger")
        self._actions[action_cls.trigger] = action_cls()

    def get(self, trigger: str) -> Optional[BaseAction]:
        return self._actions.get(trigger)

    def available(self) -> Dict[str, BaseAction]:
        return dict(self._actions)

    def slash_commands(self) -> List[Tuple[str, str]]:
        """(name, description) for every typed command, for the client menu."""
        return [(trigger[1:], action.short_text)
                for trigger, action in self._actions.items()
                if trigger.startswith("/")]


# Global singleton
registry = ActionRegistry()

def register_action(cls: Type[BaseAction]) -> Type[BaseAction]:
    registry.register(cls)
    return cls
