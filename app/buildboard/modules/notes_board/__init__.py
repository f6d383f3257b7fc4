"""
Notes board: sticky-note cards in Draft / Published / Archived columns.
A card's column is its publication status.
"""
