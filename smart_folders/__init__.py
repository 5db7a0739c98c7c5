"""Smart Folders: watched directories that transform new files.

Watches a set of user-designated folders and runs a predefined
transformation (compression, format conversion, resizing) or a custom
shell command on every new file that lands in them.
"""

__version__ = "0.1.0"
__app_name__ = "Smart Folders"
