from __future__ import annotations

from enum import Enum

"""ImportStep enum for the rent-roll import lifecycle.

State transitions: upload -> mapping -> preview -> importing -> complete
Backward edges: mapping -> upload, preview -> mapping. Any step -> upload on reset.
"""


class ImportStep(Enum):
    """Which stage of the import the user is on.

    - UPLOAD: waiting for a rent-roll file
    - MAPPING: file read, columns being mapped
    - PREVIEW: rows validated, waiting for confirmation
    - IMPORTING: executor running
    - COMPLETE: executor finished, counts final
    """
    UPLOAD = "upload"
    MAPPING = "mapping"
    PREVIEW = "preview"
    IMPORTING = "importing"
    COMPLETE = "complete"
