"""Watchers — decide when the supervised command must be restarted.

- FileWatcher: polls a file tree, fires on the first modification
- TimeWatcher: fires after a fixed delay
"""
