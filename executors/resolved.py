from core.intent import InsightIntent, ResolvedMessage
from executors.base import BaseExecutor


class ResolvedIntentExecutor(BaseExecutor):
    """
    Returns insight and other intents as resolved.
    Answering the query happens downstream of this service.
    """

    async def execute(self, message: ResolvedMessage) -> dict:
        response = self.envelope(message)
        intent = message.result.intent
        if isinstance(intent, InsightIntent):
            response["message"] = intent.question or message.raw_input
        else:
            response["message"] = intent.reason
        return response
