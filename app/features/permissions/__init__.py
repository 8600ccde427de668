"""
Permission management feature module.

Implements the chapter's role-based access control: a fixed role catalog, a
data-driven rule table evaluated as a pure lookup, and an editable
role × module × action permission matrix.
"""
