# phimask/logic/__init__.py

"""Pure masking algorithms: chunking, merging, filtering, masking, unmasking.

Nothing in this package performs I/O apart from calling the detector handed
to :func:`phimask.logic.merger.detect_chunks`.
"""
