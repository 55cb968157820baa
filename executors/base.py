from abc import ABC, abstractmethod

from core.intent import ResolvedMessage
from services.utils import deep_serialize


class BaseExecutor(ABC):
    """
    Base contract for all executors.
    Executors take an already-resolved message and return a response dict.
    No classification happens here.
    """

    @abstractmethod
    async def execute(self, message: ResolvedMessage) -> dict:
        pass

    @staticmethod
    def envelope(message: ResolvedMessage) -> dict:
        return {
            "type": message.kind,
            "intent": deep_serialize(message.result.intent),
            "diagnostics": deep_serialize(message.result.diagnostics),
            "enhancements": list(message.result.enhancements),
        }
