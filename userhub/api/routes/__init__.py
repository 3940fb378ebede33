"""Route modules mounted by the master API router."""
