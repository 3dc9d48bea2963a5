"""Domain rules that do not depend on storage or HTTP (error taxonomy, access predicates)."""
