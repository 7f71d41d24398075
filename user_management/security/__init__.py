"""Password hashing, bearer tokens, and the access guard."""
