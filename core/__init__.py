"""core/ -- Kernel layer: configuration and the shared error taxonomy.

Layer rule: core/ imports nothing from the other portal packages.
"""
