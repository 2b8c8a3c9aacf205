"""Outbound domain events and their delivery worker."""

from src.events.dispatcher import EventDispatcher, EventHandler
from src.events.models import DomainEvent, EventName


__all__ = ["DomainEvent", "EventDispatcher", "EventHandler", "EventName"]
