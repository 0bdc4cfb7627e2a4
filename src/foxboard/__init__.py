"""Foxboard: personal kanban board backend.

Users log in, create projects with columns, labels and states, and manage
tasks inside them. Access is decided per resource by a small permission
lattice (admin > owner > editor > reader > none).
"""

__version__ = "0.1.0"
