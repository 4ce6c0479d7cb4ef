"""PBM desktop shell: guided tours and workflow guides.

The tour engine under ``pbm_gui.services`` is toolkit-free; ``pbm_gui.views``
adapts it to PyQt6. ``pbm_gui.app.bootstrap.create_app`` wires everything.
"""

__version__ = "0.1.0"
