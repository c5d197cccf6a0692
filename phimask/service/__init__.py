# phimask/service/__init__.py

"""Service layer: settings, lazily built singletons and public entry points."""
