"""Contract watcher services"""
