"""Import all models here so metadata.create_all sees every table."""
from policy_review.db.base_class import Base  # noqa: F401
from policy_review.models.policy import Policy, PolicyReview, PolicyVersion  # noqa: F401
