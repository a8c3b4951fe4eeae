"""MKM Entertainment booking inquiry intake."""
