"""CRUD operations."""
from policy_review.crud.policy import (
    list_policies,
    load_policy,
    save_policy,
    to_domain,
)

__all__ = [
    "list_policies",
    "load_policy",
    "save_policy",
    "to_domain",
]
