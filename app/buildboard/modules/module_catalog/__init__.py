"""
Module catalog: which product modules are core and which are add-ons.
"""
