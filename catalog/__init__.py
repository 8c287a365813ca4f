"""catalog/ -- Software catalog records that can carry a stored file.

Only the slice the share-link subsystem needs: a record, its display name,
and the stored file path (or an external URL when nothing was uploaded).

Layer rule: catalog/ imports only stdlib, third-party libraries, and core/.
"""
