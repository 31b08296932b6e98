from .git import GitAdapter, GitResult
from .models import Commit

__all__ = ["Commit", "GitAdapter", "GitResult"]
