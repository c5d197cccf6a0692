# phimask/security/__init__.py

"""Per-record field encryption.

Each record carries its own AES-256 key, stored wrapped under a
process-wide master key; fields are sealed with AES-GCM and a fresh IV on
every write.
"""
