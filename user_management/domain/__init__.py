"""Account domain model and workflows."""
