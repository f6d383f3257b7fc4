"""
Product roadmap board: items flow from Idea to Released.
"""
