from .base import Base
from .user import User
from .tag import Tag, question_tags
from .question import Question, question_downvotes, question_upvotes
from .answer import Answer, answer_downvotes, answer_upvotes
from .interaction import Interaction, InteractionAction, interaction_tags

__all__ = [
    "Base",
    "User",
    "Tag",
    "question_tags",
    "Question",
    "question_upvotes",
    "question_downvotes",
    "Answer",
    "answer_upvotes",
    "answer_downvotes",
    "Interaction",
    "InteractionAction",
    "interaction_tags",
]
