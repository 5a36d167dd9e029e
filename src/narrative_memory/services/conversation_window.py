"""Short-term memory: the last few exchanges sent verbatim to the generation service."""

from collections import deque

from narrative_memory.domain.models import ChatMessage, ConversationTurn, Speaker


class ConversationWindow:
    """Bounded transcript of player and narrator turns.

    Turns evicted from the window are gone for good; long-term recall goes
    through the vector index, which eviction never touches.
    """

    def __init__(self, max_exchanges: int = 1):
        if max_exchanges < 1:
            raise ValueError("max_exchanges must be at least 1")
        self.max_exchanges = max_exchanges
        self._turns: deque[ConversationTurn] = deque()

    def record_exchange(self, player_text: str, narrator_text: str, turn: int) -> None:
        self._turns.append(ConversationTurn(speaker=Speaker.PLAYER, text=player_text, turn=turn))
        self._turns.append(ConversationTurn(speaker=Speaker.NARRATOR, text=narrator_text, turn=turn))
        while len(self._turns) > 2 * self.max_exchanges:
            self._turns.popleft()

    @property
    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    def transcript(self) -> list[ChatMessage]:
        """The window as generation-service messages, oldest first."""
        return [
            ChatMessage(role="user" if t.speaker is Speaker.PLAYER else "assistant", text=t.text)
            for t in self._turns
        ]

    def __len__(self) -> int:
        return len(self._turns)
