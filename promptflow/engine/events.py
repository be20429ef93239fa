"""Run completion notifications.

Each event is delivered on two channels: one for observers of the specific
execution and one for the owning user.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Protocol


def execution_channel(execution_id: Any) -> str:
    return f"workflow-execution.{execution_id}"


def user_channel(user_id: Any) -> str:
    return f"user.{user_id}"


@dataclass
class ExecutionEvent(ABC):
    event_type: ClassVar[str] = ""

    execution_id: Any
    workflow_id: Any
    user_id: Any
    completed_at: Optional[str]

    def channels(self) -> List[str]:
        channels = [execution_channel(self.execution_id)]
        if self.user_id is not None:
            channels.append(user_channel(self.user_id))
        return channels

    @abstractmethod
    def payload(self) -> Dict[str, Any]:
        pass


@dataclass
class WorkflowExecutionCompleted(ExecutionEvent):
    event_type: ClassVar[str] = "WorkflowExecutionCompleted"

    output_data: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "status": "completed",
            "completed_at": self.completed_at,
            "output_data": self.output_data,
        }


@dataclass
class WorkflowExecutionFailed(ExecutionEvent):
    event_type: ClassVar[str] = "WorkflowExecutionFailed"

    error: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "status": "failed",
            "error": self.error,
            "completed_at": self.completed_at,
        }


class ExecutionNotifier(Protocol):
    async def publish(self, event: ExecutionEvent) -> None:
        ...


class NullNotifier:
    async def publish(self, event: ExecutionEvent) -> None:
        return None
