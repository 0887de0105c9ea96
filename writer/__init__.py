"""Output writers."""
__all__ = ['CSVWriter', 'ParquetWriter']

def __getattr__(name):
    if name == 'CSVWriter':
        from .node_writer import CSVWriter
        return CSVWriter
    elif name == 'ParquetWriter':
        from .node_writer import ParquetWriter
        return ParquetWriter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
