"""Application wiring: storage backends and the ``create_app`` bootstrap."""
