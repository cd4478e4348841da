from .manager import EventManager, IEventSubscriber

__all__ = ["EventManager", "IEventSubscriber"]
