"""ORM models."""

# Import all models so they are registered with SQLAlchemy
from policy_review.models.policy import Policy, PolicyReview, PolicyVersion  # noqa

__all__ = [
    "Policy",
    "PolicyReview",
    "PolicyVersion",
]
