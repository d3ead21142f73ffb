"""Report intake: validation, submission pipeline and comments."""
