"""Repository modules for database access."""

from repositories.activity_repository import CosmosActivityRepository
from repositories.poll_vote_repository import CosmosPollVoteRepository

__all__ = [
    "CosmosActivityRepository",
    "CosmosPollVoteRepository",
]
