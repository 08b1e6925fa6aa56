from typing import Awaitable, Callable, Protocol, runtime_checkable

from agent_pipeline.models.context import AnalysisContext
from agent_pipeline.models.opinion import Opinion


@runtime_checkable
class Agent(Protocol):
    """Anything that can be plugged into a pipeline stage.
    
    Implementations treat the context as read-only, hold no state shared
    with other agents and may be invoked concurrently with their stage
    siblings. Failures are signalled by raising ``AgentError`` (any other
    exception is wrapped by the stage runner).
    
    Attributes:
        name: Unique, human-readable agent name used in failures and logs.
    """

    name: str

    async def analyze(self, context: AnalysisContext) -> Opinion:
        """Produce an opinion on ``context`` or raise ``AgentError``."""
        ...


AnalyzeFn = Callable[[AnalysisContext], Awaitable[Opinion]]


class FunctionAgent:
    """Adapt a plain coroutine function to the ``Agent`` protocol.
    
    Example:
        async def momentum(context: AnalysisContext) -> Opinion:
            ...
        
        agent = FunctionAgent("Momentum Analyst", momentum)
    """

    def __init__(self, name: str, fn: AnalyzeFn):
        if not name.strip():
            raise ValueError("Agent name must not be blank")
        self.name = name
        self._fn = fn

    async def analyze(self, context: AnalysisContext) -> Opinion:
        return await self._fn(context)

    def __repr__(self) -> str:
        return f"FunctionAgent(name={self.name!r})"
