# phimask/engine/__init__.py

"""Engine package providing PHI detection backends.

Every backend implements :class:`phimask.engine.detector.PhiDetector`:
AWS Comprehend Medical for production and a local Presidio engine for
offline use.
"""
