"""GitHub retrieval: client, rate-limit handling, pagination, collectors."""
