"""
Crops module.

Crop -> variety (market code) catalogue used by the product form, and the
per-variety information URLs linked from the public tracking page.
"""
