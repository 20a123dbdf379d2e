"""S3 staging of deployable content."""
