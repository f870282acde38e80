"""Task and global metrics rollups."""
