"""folderindex: chunk folders, embed them and search the vectors."""
