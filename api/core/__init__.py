"""
Shared, cross-cutting code for the API.

`core/` should contain small building blocks that multiple features use
(settings, logging, DB wiring, the JSON blob store). Keep feature-specific
record shapes and business logic in the corresponding feature package
(e.g. `stories/`).
"""
