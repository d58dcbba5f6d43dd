from typing import Dict, List, TypeVar

from .schemas import CamelModel, Message, Poll

M = TypeVar("M", bound=CamelModel)


def revise(entity: M, **changes) -> M:
    """Copy of ``entity`` with ``changes`` applied and the model's validators re-run."""
    return type(entity).model_validate({**entity.model_dump(), **changes})


def toggle_reaction(reactions: Dict[str, List[str]], emoji: str, user_id: str) -> Dict[str, List[str]]:
    updated = {key: list(voters) for key, voters in reactions.items()}
    voters = updated.get(emoji, [])
    if user_id in voters:
        voters = [v for v in voters if v != user_id]
        if voters:
            updated[emoji] = voters
        else:
            del updated[emoji]
    else:
        updated[emoji] = [*voters, user_id]
    return updated


def cast_poll_vote(poll: Poll, option_index: int, user_id: str) -> Poll:
    """Move the user's single vote to ``option_index``."""
    if not 0 <= option_index < len(poll.options):
        raise IndexError(f"Poll has no option {option_index}")
    options = [
        option.model_copy(update={"votes": [v for v in option.votes if v != user_id]})
        for option in poll.options
    ]
    chosen = options[option_index]
    options[option_index] = chosen.model_copy(update={"votes": [*chosen.votes, user_id]})
    return poll.model_copy(update={"options": options})


def mark_read(message: Message, user_id: str) -> Message:
    if user_id in message.read_by:
        return message
    return message.model_copy(update={"read_by": [*message.read_by, user_id]})


def net_score(correct: int, incorrect: int) -> float:
    # four wrong answers cancel one right one
    return correct - incorrect / 4
