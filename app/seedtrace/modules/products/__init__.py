"""
Products module.

Scope:
- Product records carrying seed-label compliance metadata
- Operator submission, admin approval/rejection, public tracking lookup
- Bulk import from CSV / Excel (tabular parser -> field mapper -> row validator -> report)
- Excel export with one tracking QR code per row
"""
