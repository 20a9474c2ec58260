"""LinkShelf services: auth core and the user collaborator."""
