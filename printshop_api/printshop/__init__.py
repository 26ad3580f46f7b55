"""
Print-shop order engine.

Order intake normalization, transactional order lifecycle with material
reservation/deduction, and status-change notification rules.
"""
