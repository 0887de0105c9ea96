"""Lattice value types and construction helpers."""
__all__ = ['Anonymity', 'InformationLoss', 'Node', 'Lattice', 'SearchResult', 'build_lattice']

def __getattr__(name):
    if name in ('Anonymity', 'InformationLoss', 'Node', 'Lattice', 'SearchResult'):
        from . import lattice
        return getattr(lattice, name)
    elif name == 'build_lattice':
        from .builder import build_lattice
        return build_lattice
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
