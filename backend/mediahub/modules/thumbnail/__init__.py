"""Preview thumbnails for uploaded media."""
