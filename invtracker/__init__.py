"""CS inventory tracker: Steam sign-in, cookie sessions and the client identity cache."""
