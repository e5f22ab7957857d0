#!/usr/bin/env python
"""
协作上下文
Shared LLM handle, conversation memory, trace/tenant ids and a locked
shared-data map, living for one collaborate() call.
"""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from langchain_core.language_models import BaseChatModel

from ..config import CollaborationConfig


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    FUNCTION = "function"
    DEVELOPER = "developer"


@dataclass(frozen=True)
class Message:
    role: MessageRole
    content: str


class Memory:
    """Append-only FIFO log of conversation messages."""

    def __init__(self):
        self._messages: List[Message] = []
        self._lock = threading.Lock()

    def add(self, role: MessageRole, content: str) -> None:
        with self._lock:
            self._messages.append(Message(MessageRole(role), content))

    def messages(self) -> List[Message]:
        with self._lock:
            return list(self._messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


class CollaborationContext:
    """Context shared by all agents of one collaborator."""

    def __init__(
        self,
        chat: Optional[BaseChatModel] = None,
        config: Optional[CollaborationConfig] = None,
        memory: Optional[Memory] = None,
        trace_id: Optional[str] = None,
        tenant_id: str = "default",
    ):
        self.chat = chat
        self.config = config or CollaborationConfig()
        self.memory = memory if memory is not None else Memory()
        self.trace_id = trace_id or uuid.uuid4().hex
        self.tenant_id = tenant_id
        self._shared_data: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = None

    def set_shared(self, key: str, value: Any) -> None:
        with self._lock:
            self._shared_data[key] = value

    def get_shared(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._shared_data.get(key, default)

    def shared_keys(self) -> List[str]:
        with self._lock:
            return list(self._shared_data)

    @property
    def executor(self) -> ThreadPoolExecutor:
        """Worker pool for blocking data-source calls, created on first use."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(thread_name_prefix="rca-fetch")
            return self._executor

    def shutdown_executor(self, wait: bool = True) -> None:
        """Release the worker pool. With ``wait=False`` hung calls are abandoned."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
