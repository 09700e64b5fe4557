"""Use cases: each service owns its store round trips and calls into ``caporslap.domain``."""
