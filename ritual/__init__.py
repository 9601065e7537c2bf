"""
Ritual - habit-tracking backend over a key-value entity store.

This package implements the server side of the Ritual habit tracker:
- Entities (User, Habit) stored as JSON documents, one key per entity
- Indexes (ordered id lists) for listing and for email lookup
- Auth service (password hashing, JWT issuance, bearer authorization)
- Habit service (CRUD plus upsert-by-date progress logs)
- FastAPI routing layer rendering a uniform JSON envelope

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │  Frontend   │────▶│  FastAPI    │────▶│ Auth / Habit    │
    │  (SPA)      │     │  routes     │     │ services        │
    └─────────────┘     └─────────────┘     └────────┬────────┘
                                                     │
                                                     ▼
                        ┌─────────────────────────────────────────┐
                        │        Entity / Index abstraction       │
                        └─────────────────────────────────────────┘
                                             │
                                             ▼
                        ┌─────────────────────────────────────────┐
                        │   KeyValueStore (memory | sqlite)       │
                        └─────────────────────────────────────────┘

Invariants:
    - Every entity lives under "<entityName>:<id>"
    - An id is in a listing index iff its entity exists
    - An email index record always points at an existing user, except for
      the documented window between the two registration writes
    - Stored passwords are hashes and never leave the service

How to change safely:
    - Keep entity key formats stable; they are the storage contract
    - Route every in-place update through Entity.mutate
    - Add new habit fields with defaults in Habit.from_json
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
