"""Node table readers."""
__all__ = ['LatticeReader']

def __getattr__(name):
    if name == 'LatticeReader':
        from .lattice_reader import LatticeReader
        return LatticeReader
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
