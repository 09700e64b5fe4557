"""Domain layer (pure logic).

- Keep game rules and calculations here: difficulty, token sequencing,
  guess evaluation, prize allocation, mystery-box eligibility.
- Avoid I/O: no Redis, no HTTP/FastAPI.
- Prefer deterministic functions (time/random passed in as arguments if needed).
"""
