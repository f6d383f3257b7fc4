"""
Kanban board plumbing shared by the notes board and the roadmap board.

Columns live in ``board_columns`` keyed by (board, key); each card table
stores its column key in ``status`` and its position in ``order_index``.
"""
