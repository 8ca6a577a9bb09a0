"""Video export service: edit-state validation, export job queue and render worker."""
