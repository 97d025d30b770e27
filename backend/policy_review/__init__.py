"""Policy review engine: diffing, change review and versioned patching of policy documents."""
