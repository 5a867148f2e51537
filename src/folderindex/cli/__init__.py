"""folderindex command-line interface."""
