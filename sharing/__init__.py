"""sharing/ -- Secret-code share links for anonymous file downloads.

Layer rule: sharing/ may import from core/, auth/ (password hashing) and
catalog/ (the file-bearing records). It does NOT import from api/.
"""
