"""
Officer position feature module.

Assigns chapter members to board and cadre positions for calendar-year terms,
validating each proposed term before replacing the stored one.
"""
