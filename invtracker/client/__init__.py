"""Client-side helpers: backend API access and the current-user identity cache."""
