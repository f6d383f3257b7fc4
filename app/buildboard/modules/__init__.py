"""
Feature modules live under this package.

Keep module boundaries clean: each module should own its routes/templates/models,
while reusing platform primitives (auth, RBAC, audit and the DB session).
"""

