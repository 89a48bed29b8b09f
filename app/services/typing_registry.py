from app.schemas.relay_events import Participant


class TypingRegistry:
    """
    Ephemeral "who is typing" state, conversation id -> participants.
    Lives in the relay process only; empty conversations are pruned.
    """

    def __init__(self) -> None:
        self._typing: dict[str, set[Participant]] = {}

    def set_typing(self, conversation_id: str, participant: Participant, is_typing: bool) -> bool:
        """Returns True when the state changed."""
        if is_typing:
            members = self._typing.setdefault(conversation_id, set())
            if participant in members:
                return False
            members.add(participant)
            return True
        return self.clear(conversation_id, participant)

    def clear(self, conversation_id: str, participant: Participant) -> bool:
        members = self._typing.get(conversation_id)
        if not members or participant not in members:
            return False
        members.discard(participant)
        if not members:
            del self._typing[conversation_id]
        return True

    def is_typing(self, conversation_id: str, participant: Participant) -> bool:
        return participant in self._typing.get(conversation_id, ())

    def typing_in(self, conversation_id: str) -> set[Participant]:
        return set(self._typing.get(conversation_id, ()))

    def __len__(self) -> int:
        return len(self._typing)
