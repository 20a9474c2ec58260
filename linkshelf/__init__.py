"""LinkShelf - bookmark manager backend."""
