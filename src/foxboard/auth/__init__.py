"""Authentication and authorization.

Two halves:
1. Who is calling: username/password login creates a server-side session,
   the opaque token comes back on every request as a Bearer header.
2. What may they do: the permission lattice (admin > owner > editor >
   reader > none), resolved per resource and checked against the level the
   operation requires.
"""
