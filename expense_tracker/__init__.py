"""
Expense Tracker - Source Package

A personal expense tracker. Authentication, persistence and authorization
live in a hosted Supabase project; this package is the client side of it.

DESIGN PRINCIPLES:
1. The backend owns the data, the client owns a transient copy
2. Mutations that fail offline are queued, never lost silently
3. Derived views (filters, charts, CSV) are pure functions of the cached list
4. Every backend is behind an interface so tests run without a network
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
