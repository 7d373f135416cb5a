"""Services package for study progress tracking."""
