"""
Member directory collaborator.
"""
