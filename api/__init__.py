"""HTTP surface for the column classification service."""
