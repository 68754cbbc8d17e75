import asyncio
import weakref


class ConversationLocks:
    """One asyncio.Lock per conversation id.

    Locks are held weakly and disappear once no task is using them.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def for_conversation(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
