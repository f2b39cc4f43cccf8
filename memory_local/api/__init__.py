from .plugin import MemoryPlugin, plugin

__all__ = ['MemoryPlugin', 'plugin']
