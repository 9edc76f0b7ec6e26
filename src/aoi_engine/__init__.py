"""AOI engine: drawing, storage and exchange of map areas of interest."""
