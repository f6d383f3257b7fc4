"""
Menu builder: the sidebar navigation tree.

Rows are stored flat (parent_id + order_index) and rebuilt into a tree on
every request; edits run against the in-memory tree and the whole tree is
written back.
"""
